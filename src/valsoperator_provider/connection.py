"""Resolved connection configuration and the Kubernetes API client built from it.

``ConnectionConfig`` is the single, immutable result of configuration
resolution: a ``kubernetes.client.Configuration`` populated by the library
loaders and the explicit overlay, plus the user agent. ``build_api_client``
turns it into a ``kubernetes.client.ApiClient`` once per provider lifetime.

Example:
    >>> conn = ConfigResolver().resolve(ProviderConfig(host="https://k8s.example.com:6443"))
    >>> api_client = build_api_client(conn)
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from kubernetes import client as k8s_client
from kubernetes.config import ConfigException
from kubernetes.config.dateutil import parse_rfc3339
from kubernetes.config.exec_provider import ExecProvider
from kubernetes.config.kube_config import ConfigNode, FileOrData
from pydantic import BaseModel, ConfigDict

from valsoperator_provider.config import ExecConfig
from valsoperator_provider.errors import ConfigurationError

logger = structlog.get_logger(__name__)

# No host: a degraded client fails on its first request without connecting.
UNCONFIGURED_HOST = ""

# api_key entry the client sends as the Authorization header; the loaders use it too.
AUTH_KEY = "BearerToken"


class ConnectionConfig(BaseModel):
    """Connection parameters resolved from every configuration layer.

    Attributes:
        configuration: ``kubernetes.client.Configuration`` carrying host, TLS
            material, credentials and proxy. None for the degraded
            configuration.
        user_agent: User-Agent header sent with every request.
    """

    model_config = ConfigDict(frozen=True)

    configuration: Any = None
    user_agent: str | None = None

    @property
    def host(self) -> str | None:
        if self.configuration is None:
            return None
        return self.configuration.host or None

    @property
    def insecure(self) -> bool:
        return self.configuration is not None and not self.configuration.verify_ssl

    @property
    def is_empty(self) -> bool:
        """Return True for the degraded configuration with no server."""
        return not self.host

    def with_user_agent(self, user_agent: str) -> ConnectionConfig:
        return self.model_copy(update={"user_agent": user_agent})


def pem_file(content: str) -> str:
    """Return the path of a temp file holding inline PEM material.

    The kubernetes client only accepts file paths for TLS material; the
    library writes one file per content and removes it at exit.
    """
    return FileOrData(
        {"pem-data": content}, "pem", data_key_name="pem-data", base64_file_content=False
    ).as_file()


class PinnedSettingsHook:
    """``refresh_api_key_hook`` keeping explicit settings over a loader's refresh.

    The kubeconfig and in-cluster loaders copy their host and TLS settings
    back onto the configuration every time they refresh the credential.
    """

    def __init__(self, refresh: Callable[[Any], None], settings: dict[str, Any]) -> None:
        self._refresh = refresh
        self._settings = dict(settings)

    def __call__(self, configuration: Any) -> None:
        self._refresh(configuration)
        for attr, value in self._settings.items():
            setattr(configuration, attr, value)


# =============================================================================
# Exec credential plugins
# =============================================================================


def run_exec_plugin(exec_config: ExecConfig) -> dict[str, Any]:
    """Run an exec credential command and return its ExecCredential ``status``.

    Raises:
        ConfigurationError: If the command cannot run, fails, or prints
            invalid output.
    """
    node = ConfigNode(
        "exec",
        {
            "apiVersion": exec_config.api_version,
            "command": exec_config.command,
            "args": list(exec_config.args),
            "env": [{"name": k, "value": v} for k, v in exec_config.env.items()],
        },
    )
    logger.debug("running exec credential command", command=exec_config.command)
    try:
        status = ExecProvider(node, os.getcwd()).run()
    except (ConfigException, OSError) as e:
        raise ConfigurationError(f"exec credential failed: {e}", field="exec.command") from e
    if not isinstance(status, dict):
        raise ConfigurationError("ExecCredential output has no status", field="exec.command")
    return status


def _expired(status: dict[str, Any]) -> bool:
    expiry = status.get("expirationTimestamp")
    if not expiry:
        return False
    return parse_rfc3339(expiry) <= datetime.now(timezone.utc)


class ExecTokenHook:
    """``refresh_api_key_hook`` re-running the command once its token expires."""

    def __init__(self, exec_config: ExecConfig, status: dict[str, Any]) -> None:
        self._exec_config = exec_config
        self._status = status
        self._lock = threading.Lock()

    def __call__(self, configuration: Any) -> None:
        with self._lock:
            if _expired(self._status):
                self._status = run_exec_plugin(self._exec_config)
            if self._status.get("token"):
                configuration.api_key[AUTH_KEY] = f"Bearer {self._status['token']}"


def apply_exec_credential(configuration: Any, exec_config: ExecConfig) -> None:
    """Run ``exec_config`` and install its credential on ``configuration``.

    A token becomes the bearer credential, refreshed on expiry; client
    certificate data replaces the configured client certificate and key.
    """
    status = run_exec_plugin(exec_config)
    if status.get("clientCertificateData") and status.get("clientKeyData"):
        configuration.cert_file = pem_file(status["clientCertificateData"])
        configuration.key_file = pem_file(status["clientKeyData"])
    if status.get("token"):
        configuration.api_key[AUTH_KEY] = f"Bearer {status['token']}"
        configuration.refresh_api_key_hook = ExecTokenHook(exec_config, status)
    else:
        configuration.api_key.pop(AUTH_KEY, None)
        configuration.refresh_api_key_hook = None


# =============================================================================
# ApiClient
# =============================================================================


def build_api_client(conn: ConnectionConfig) -> Any:
    """Build a ``kubernetes.client.ApiClient`` for a resolved configuration.

    The degraded configuration yields a client without a server; every
    request made with it fails with a ``TransportError``.
    """
    configuration = conn.configuration
    if configuration is None:
        configuration = k8s_client.Configuration(host=UNCONFIGURED_HOST)
        logger.warning("building api client without a server, requests will fail")

    api_client = k8s_client.ApiClient(configuration)
    if conn.user_agent:
        api_client.user_agent = conn.user_agent
    logger.debug(
        "built kubernetes api client",
        host=conn.host,
        insecure=conn.insecure,
        proxied=bool(configuration.proxy),
    )
    return api_client


__all__ = [
    "AUTH_KEY",
    "ConnectionConfig",
    "ExecTokenHook",
    "PinnedSettingsHook",
    "apply_exec_credential",
    "build_api_client",
    "pem_file",
    "run_exec_plugin",
]
