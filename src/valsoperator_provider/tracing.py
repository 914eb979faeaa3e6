"""OpenTelemetry tracing helpers for object-store operations.

Every store call (get, create, update, delete) and every reconcile runs
inside a ``valsoperator.<operation>`` span.

Security:
    - Spans carry kind, namespace and name only, never spec payloads
    - Error messages are sanitized before recording

Example:
    >>> from valsoperator_provider.tracing import get_tracer, store_span
    >>> with store_span(get_tracer(), "get", kind="ValsSecret", namespace="default", name="db"):
    ...     pass
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

TRACER_NAME = "valsoperator.provider"

ATTR_OPERATION = "valsoperator.operation"
ATTR_KIND = "valsoperator.kind"
ATTR_NAMESPACE = "valsoperator.namespace"
ATTR_NAME = "valsoperator.name"

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|token|authorization|client_key|credential)\s*[=:]\s*\S+",
    re.IGNORECASE,
)
_URL_CREDENTIAL_PATTERN = re.compile(r"://[^@/\s]+:[^@/\s]+@")


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Redact credentials from an error message and truncate it.

    Example:
        >>> sanitize_error_message("Failed: password=secret123 at host")
        'Failed: password=<REDACTED> at host'
    """
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", msg)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(
        lambda m: m.group(0).split("=", 1)[0].split(":", 1)[0] + "=<REDACTED>"
        if "=" in m.group(0)
        else m.group(0).split(":", 1)[0] + ": <REDACTED>",
        sanitized,
    )
    return sanitized[:max_length]


def get_tracer() -> trace.Tracer:
    """Return the provider's tracer (a no-op tracer when OTel is unconfigured)."""
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def store_span(
    tracer: trace.Tracer,
    operation: str,
    *,
    kind: str | None = None,
    namespace: str | None = None,
    name: str | None = None,
    extra_attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Context manager wrapping one store operation in a span.

    Args:
        tracer: OpenTelemetry tracer instance.
        operation: Operation name (e.g. "get", "upsert").
        kind: Kind of the addressed object.
        namespace: Namespace of the addressed object.
        name: Name of the addressed object.
        extra_attributes: Additional span attributes.

    Yields:
        The active span.
    """
    attributes: dict[str, Any] = {ATTR_OPERATION: operation}
    if kind is not None:
        attributes[ATTR_KIND] = kind
    if namespace is not None:
        attributes[ATTR_NAMESPACE] = namespace
    if name is not None:
        attributes[ATTR_NAME] = name
    if extra_attributes:
        attributes.update(extra_attributes)

    with tracer.start_as_current_span(f"valsoperator.{operation}", attributes=attributes) as span:
        try:
            yield span
            span.set_status(Status(StatusCode.OK))
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", sanitize_error_message(str(e)))
            raise


__all__ = [
    "ATTR_KIND",
    "ATTR_NAME",
    "ATTR_NAMESPACE",
    "ATTR_OPERATION",
    "TRACER_NAME",
    "get_tracer",
    "sanitize_error_message",
    "store_span",
]
