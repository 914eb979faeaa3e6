"""Unit tests for structured logging configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from valsoperator_provider.logging import add_trace_context, configure_logging, normalize_level


class TestNormalizeLevel:
    """Test level name translation."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("TRACE", logging.DEBUG),
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARN", logging.WARNING),
            ("warning", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("OFF", logging.CRITICAL),
        ],
    )
    def test_known_levels(self, name: str, expected: int) -> None:
        """Test Terraform-style and stdlib names are accepted."""
        assert normalize_level(name) == expected

    def test_unknown_level(self) -> None:
        """Test unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown log level"):
            normalize_level("LOUD")


class TestAddTraceContext:
    """Test trace correlation."""

    def test_outside_span(self) -> None:
        """Test no ids are added without an active span."""
        assert add_trace_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_inside_span(
        self,
        tracer_with_exporter: tuple[TracerProvider, InMemorySpanExporter],
    ) -> None:
        """Test ids of the active span are added."""
        provider, _ = tracer_with_exporter
        with provider.get_tracer("test").start_as_current_span("op") as span:
            event = add_trace_context(None, "info", {"event": "x"})
            ctx = span.get_span_context()

        assert event["trace_id"] == format(ctx.trace_id, "032x")
        assert event["span_id"] == format(ctx.span_id, "016x")


class TestConfigureLogging:
    """Test the processor chain."""

    def test_json_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON lines go to stderr, never stdout."""
        configure_logging(log_level="INFO", json_output=True)

        structlog.get_logger("test").info("provider configured", host="https://h:6443")

        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip())
        assert record["event"] == "provider configured"
        assert record["host"] == "https://h:6443"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test records below the level are dropped."""
        configure_logging(log_level="WARN", json_output=True)

        log = structlog.get_logger("test")
        log.info("hidden")
        log.warning("shown")

        lines = capsys.readouterr().err.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["shown"]

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test console rendering is plain text."""
        configure_logging(log_level="DEBUG", json_output=False)

        structlog.get_logger("test").debug("resolved connection")

        assert "resolved connection" in capsys.readouterr().err

    def test_invalid_level(self) -> None:
        """Test an unknown level is rejected before configuring."""
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(log_level="LOUD")
