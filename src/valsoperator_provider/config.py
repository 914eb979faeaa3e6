"""Provider configuration inputs.

``ProviderConfig`` is the bag of optional connection inputs the host passes
in. Nothing here is resolved yet; ``ConfigResolver`` layers these fields over
the selected kubeconfig files to produce a ``ConnectionConfig``.

Example:
    >>> from valsoperator_provider.config import ProviderConfig
    >>> config = ProviderConfig(host="https://k8s.example.com:6443", insecure=True)
    >>> config.has_context_override
    False
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from valsoperator_provider.errors import ConfigurationError


class ExecConfig(BaseModel):
    """External command issuing client credentials (client-go exec plugin).

    Attributes:
        api_version: ``client.authentication.k8s.io`` version the command speaks.
        command: Executable to run.
        env: Extra environment variables for the command.
        args: Command-line arguments.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_version: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    env: dict[str, str] = Field(default_factory=dict)
    args: list[str] = Field(default_factory=list)


class ProviderConfig(BaseModel):
    """Connection inputs accepted by the provider.

    All fields are optional. Explicit fields override whatever the selected
    kubeconfig files provide.

    Attributes:
        host: API server URL or host:port.
        username: HTTP basic auth username.
        password: HTTP basic auth password.
        insecure: Skip TLS verification of the server certificate.
        tls_server_name: Server name used for SNI and certificate checks.
        client_certificate: PEM client certificate.
        client_key: PEM client key.
        cluster_ca_certificate: PEM CA bundle.
        config_path: A single kubeconfig file.
        config_paths: Kubeconfig files, in precedence order.
        config_context: Context to select instead of current-context.
        config_context_auth_info: User entry to use in the selected context.
        config_context_cluster: Cluster entry to use in the selected context.
        token: Bearer token.
        proxy_url: Proxy for all API requests.
        ignore_annotations: Annotation regexes ignored across resources.
        ignore_labels: Label regexes ignored across resources.
        exec: External credential command.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "examples": [
                {"config_path": "~/.kube/config", "config_context": "kind-vals"},
                {
                    "host": "https://k8s.example.com:6443",
                    "token": "********",
                    "cluster_ca_certificate": "-----BEGIN CERTIFICATE-----...",
                },
            ]
        },
    )

    host: str | None = None
    username: str | None = None
    password: SecretStr | None = None
    insecure: bool | None = None

    tls_server_name: str | None = None
    client_certificate: str | None = None
    client_key: SecretStr | None = None
    cluster_ca_certificate: str | None = None

    config_path: str | None = Field(
        default=None,
        description="Path to the kube config file.",
    )
    config_paths: list[str] = Field(
        default_factory=list,
        description="Kube config files. Can be set with KUBE_CONFIG_PATHS.",
    )

    config_context: str | None = None
    config_context_auth_info: str | None = None
    config_context_cluster: str | None = None

    token: SecretStr | None = None
    proxy_url: str | None = None

    ignore_annotations: list[str] = Field(default_factory=list)
    ignore_labels: list[str] = Field(default_factory=list)

    exec: ExecConfig | None = None

    @field_validator(
        "host",
        "username",
        "tls_server_name",
        "client_certificate",
        "cluster_ca_certificate",
        "config_path",
        "config_context",
        "config_context_auth_info",
        "config_context_cluster",
        "proxy_url",
        mode="before",
    )
    @classmethod
    def empty_is_unset(cls, v: Any) -> Any:
        """Treat empty strings as unset, like the host's null values."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("password", "client_key", "token", mode="before")
    @classmethod
    def empty_secret_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v:
            return None
        return v

    @field_validator("ignore_annotations", "ignore_labels")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Check every ignore entry is a valid regular expression.

        Raises:
            ValueError: If a pattern does not compile.
        """
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid regular expression {pattern!r}: {e}"
                raise ValueError(msg) from e
        return v

    @property
    def has_context_override(self) -> bool:
        """Return True when any of the context/cluster/auth-info overrides is set."""
        return bool(
            self.config_context or self.config_context_auth_info or self.config_context_cluster
        )

    @property
    def explicit_config_paths(self) -> list[str]:
        """Return the kubeconfig paths given explicitly, ``config_path`` first."""
        if self.config_path:
            return [self.config_path]
        return list(self.config_paths)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ProviderConfig:
        """Build from a host-supplied mapping, dropping null values.

        Raises:
            ConfigurationError: If the mapping fails validation.
        """
        cleaned = {k: v for k, v in (data or {}).items() if v is not None}
        try:
            return cls.model_validate(cleaned)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(first["msg"], field=field) from e

    @classmethod
    def from_file(cls, path: str | Path) -> ProviderConfig:
        """Load from a YAML (or JSON) file.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid.
        """
        import yaml

        file_path = Path(path).expanduser()
        try:
            with file_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(str(e), field=str(file_path)) from e
        if data is not None and not isinstance(data, Mapping):
            raise ConfigurationError("expected a mapping at top level", field=str(file_path))
        return cls.from_mapping(data)


__all__ = ["ExecConfig", "ProviderConfig"]
