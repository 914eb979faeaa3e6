"""Unit tests for ProviderConfig and ExecConfig."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from valsoperator_provider.config import ExecConfig, ProviderConfig
from valsoperator_provider.errors import ConfigurationError


class TestProviderConfig:
    """Test ProviderConfig validation."""

    def test_all_fields_optional(self) -> None:
        """Test an empty config is valid."""
        config = ProviderConfig()
        assert config.host is None
        assert config.insecure is None
        assert config.config_paths == []
        assert config.has_context_override is False

    def test_empty_strings_are_unset(self) -> None:
        """Test empty strings behave like null inputs."""
        config = ProviderConfig(host="", config_context="  ", token="")
        assert config.host is None
        assert config.config_context is None
        assert config.token is None

    def test_secrets_are_masked(self) -> None:
        """Test credentials are SecretStr and hidden in repr."""
        config = ProviderConfig(password="hunter2", token="abc", client_key="KEY")
        assert isinstance(config.password, SecretStr)
        assert "hunter2" not in repr(config)
        assert config.token is not None
        assert config.token.get_secret_value() == "abc"

    def test_context_override_detected(self) -> None:
        """Test any of the three overrides counts."""
        assert ProviderConfig(config_context_cluster="c").has_context_override is True
        assert ProviderConfig(config_context_auth_info="u").has_context_override is True

    def test_config_path_takes_precedence(self) -> None:
        """Test config_path wins over config_paths."""
        config = ProviderConfig(config_path="/a", config_paths=["/b", "/c"])
        assert config.explicit_config_paths == ["/a"]

    def test_config_paths_order_kept(self) -> None:
        """Test config_paths keep their precedence order."""
        config = ProviderConfig(config_paths=["/b", "/c"])
        assert config.explicit_config_paths == ["/b", "/c"]

    def test_invalid_ignore_pattern(self) -> None:
        """Test ignore lists must contain valid regular expressions."""
        with pytest.raises(ValidationError, match="Invalid regular expression"):
            ProviderConfig(ignore_annotations=["(unclosed"])

    def test_valid_ignore_patterns(self) -> None:
        """Test valid regular expressions are kept as given."""
        config = ProviderConfig(ignore_labels=[r"^app\.kubernetes\.io/.*"])
        assert config.ignore_labels == [r"^app\.kubernetes\.io/.*"]

    def test_unknown_field_rejected(self) -> None:
        """Test unknown fields are forbidden."""
        with pytest.raises(ValidationError):
            ProviderConfig(hostname="x")  # type: ignore[call-arg]


class TestExecConfig:
    """Test ExecConfig validation."""

    def test_command_required(self) -> None:
        """Test exec needs an api_version and a command."""
        with pytest.raises(ValidationError):
            ExecConfig(api_version="client.authentication.k8s.io/v1", command="")

    def test_defaults(self) -> None:
        """Test env and args default to empty."""
        exec_config = ExecConfig(api_version="client.authentication.k8s.io/v1", command="aws")
        assert exec_config.env == {}
        assert exec_config.args == []


class TestFromMapping:
    """Test building ProviderConfig from host-supplied data."""

    def test_nulls_are_dropped(self) -> None:
        """Test null values do not override defaults."""
        config = ProviderConfig.from_mapping({"host": None, "config_paths": None})
        assert config.config_paths == []

    def test_none_mapping(self) -> None:
        """Test a missing mapping is an empty config."""
        assert ProviderConfig.from_mapping(None) == ProviderConfig()

    def test_nested_exec(self) -> None:
        """Test exec is parsed from a nested mapping."""
        config = ProviderConfig.from_mapping(
            {
                "exec": {
                    "api_version": "client.authentication.k8s.io/v1beta1",
                    "command": "aws",
                    "args": ["eks", "get-token"],
                    "env": {"AWS_PROFILE": "dev"},
                }
            }
        )
        assert config.exec is not None
        assert config.exec.args == ["eks", "get-token"]

    def test_invalid_input_names_field(self) -> None:
        """Test validation failures become ConfigurationError with the field."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProviderConfig.from_mapping({"insecure": "definitely"})
        assert exc_info.value.field == "insecure"


class TestFromFile:
    """Test loading ProviderConfig from YAML files."""

    def test_yaml_file(self, tmp_path: Path) -> None:
        """Test a YAML file is loaded."""
        path = tmp_path / "provider.yaml"
        path.write_text("config_path: ~/.kube/config\nconfig_context: kind-vals\n")
        config = ProviderConfig.from_file(path)
        assert config.config_context == "kind-vals"

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file is an empty config."""
        path = tmp_path / "provider.yaml"
        path.write_text("")
        assert ProviderConfig.from_file(path) == ProviderConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file is a ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ProviderConfig.from_file(tmp_path / "missing.yaml")

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """Test a list document is rejected."""
        path = tmp_path / "provider.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            ProviderConfig.from_file(path)
