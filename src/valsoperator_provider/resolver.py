"""Layered resolution of the cluster connection configuration.

``ConfigResolver`` turns a ``ProviderConfig`` into one ``ConnectionConfig``:

1. Select credential files: ``config_path``, else ``config_paths``, else the
   ``KUBE_CONFIG_PATHS`` environment variable. Without any, fall back to
   default discovery (in-cluster service account, then ``KUBECONFIG`` or
   ``~/.kube/config``); finding nothing there is not an error.
2. Load the files through ``kubernetes.config``, applying the
   context/cluster/auth-info override or using ``current-context``.
3. Overlay explicit fields in a fixed order: insecure, TLS server name, CA,
   client certificate, host, client key, proxy URL; then one credential:
   bearer token, else exec, else username and password. Explicit settings
   survive the loaders' credential refresh.
4. Stamp the user agent.

A malformed host is fatal. Any failure of the file-based loader is logged
and degrades to an empty configuration; requests made with it fail at first
use.

Example:
    >>> resolver = ConfigResolver()
    >>> conn = resolver.resolve(ProviderConfig(host="https://explicit:6443"), user_agent="test")
    >>> conn.host
    'https://explicit:6443'
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import structlog
import urllib3
from kubernetes.config import incluster_config

from valsoperator_provider.config import ProviderConfig
from valsoperator_provider.connection import (
    AUTH_KEY,
    ConnectionConfig,
    PinnedSettingsHook,
    apply_exec_credential,
    pem_file,
)
from valsoperator_provider.errors import ConfigurationError
from valsoperator_provider.kubeconfig import load_in_cluster, load_kubeconfig, new_configuration

logger = structlog.get_logger(__name__)

KUBE_CONFIG_PATHS_ENV = "KUBE_CONFIG_PATHS"
KUBECONFIG_ENV = "KUBECONFIG"
DEFAULT_KUBECONFIG = "~/.kube/config"


def default_user_agent(terraform_version: str = "") -> str:
    """Return the user agent sent when the host does not supply one."""
    return f"HashiCorp/1.0 Terraform/{terraform_version}"


def parse_host(host: str, *, default_tls: bool) -> str:
    """Normalize an explicit host into a server URL.

    A bare ``host[:port]`` gets ``https://`` when TLS material or insecure
    was given explicitly, ``http://`` otherwise. A path other than ``/`` is
    rejected.

    Raises:
        ConfigurationError: If the host is not a URL or host:port pair.
    """
    if not host:
        raise ConfigurationError("host must be a URL or a host:port pair", field="host")
    try:
        parts = urlsplit(host)
        if not parts.scheme or not parts.netloc:
            scheme = "https://" if default_tls else "http://"
            parts = urlsplit(scheme + host)
        # Accessing .port validates it.
        _ = parts.port
    except ValueError as e:
        raise ConfigurationError(f"failed to parse host {host!r}: {e}", field="host") from e
    if not parts.hostname:
        raise ConfigurationError(f"failed to parse host {host!r}: no hostname", field="host")
    if parts.path not in ("", "/"):
        raise ConfigurationError(
            f"host must be a URL or a host:port pair: {host!r}", field="host"
        )
    return urlunsplit(parts._replace(path=""))


class ConfigResolver:
    """Resolve provider inputs into a single connection configuration.

    Args:
        environ: Environment to read path lists and in-cluster settings from.
            Defaults to ``os.environ``.
        service_token_path: Service account token for in-cluster discovery.
        service_ca_path: Service account CA bundle for in-cluster discovery.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        *,
        service_token_path: str = incluster_config.SERVICE_TOKEN_FILENAME,
        service_ca_path: str = incluster_config.SERVICE_CERT_FILENAME,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._service_token_path = service_token_path
        self._service_ca_path = service_ca_path

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(
        self,
        config: ProviderConfig,
        *,
        user_agent: str | None = None,
        strict: bool = False,
    ) -> ConnectionConfig:
        """Resolve ``config`` into a ``ConnectionConfig``.

        Args:
            config: Provider inputs.
            user_agent: User-Agent to stamp. Defaults to the Terraform agent.
            strict: Raise loader failures instead of degrading to an empty
                configuration.

        Returns:
            The resolved configuration, or an empty one carrying only the
            user agent when the file-based loader failed.

        Raises:
            ConfigurationError: If the explicit host is malformed, or any
                loader failure when ``strict`` is set.
        """
        agent = user_agent or default_user_agent()
        host = self._explicit_host(config)

        try:
            configuration = new_configuration()
            self._load_base(configuration, config)
            self._overlay(configuration, config, host)
            if not configuration.host:
                raise ConfigurationError("no configuration has been provided", field="host")
        except ConfigurationError as e:
            if strict:
                raise
            logger.warning(
                "invalid provider configuration was supplied, provider operations likely to fail",
                error=e.message,
                detail="continuing without a server, every request will fail",
            )
            return ConnectionConfig(user_agent=agent)

        conn = ConnectionConfig(configuration=configuration, user_agent=agent)
        logger.debug("resolved connection", host=conn.host, insecure=conn.insecure)
        return conn

    def select_paths(self, config: ProviderConfig) -> list[str]:
        """Return the credential files to load, in precedence order.

        Empty means default discovery applies.
        """
        paths = config.explicit_config_paths
        if not paths:
            env_value = self._environ.get(KUBE_CONFIG_PATHS_ENV, "")
            paths = [p for p in env_value.split(os.pathsep) if p]
        return [os.path.expanduser(p) for p in paths]

    # =========================================================================
    # Layers
    # =========================================================================

    def _explicit_host(self, config: ProviderConfig) -> str | None:
        if not config.host:
            return None
        default_tls = bool(
            config.cluster_ca_certificate or config.client_certificate or config.insecure
        )
        return parse_host(config.host, default_tls=default_tls)

    def _load_base(self, configuration: Any, config: ProviderConfig) -> None:
        overrides = {
            "context": config.config_context,
            "cluster": config.config_context_cluster,
            "auth_info": config.config_context_auth_info,
        }
        if config.has_context_override:
            logger.debug("using overridden context", **overrides)

        paths = self.select_paths(config)
        if paths:
            load_kubeconfig(paths, configuration, explicit=len(paths) == 1, **overrides)
            return

        if config.host:
            # Explicit host without files: nothing to discover.
            return

        if load_in_cluster(
            configuration,
            environ=self._environ,
            token_path=self._service_token_path,
            ca_path=self._service_ca_path,
        ):
            return

        default_paths = [
            os.path.expanduser(p)
            for p in self._environ.get(KUBECONFIG_ENV, DEFAULT_KUBECONFIG).split(os.pathsep)
            if p
        ]
        if not load_kubeconfig(default_paths, configuration, **overrides):
            logger.debug("default discovery found no configuration")

    def _overlay(self, configuration: Any, config: ProviderConfig, host: str | None) -> None:
        pinned: dict[str, Any] = {}
        # Only a true value overrides; it also drops a file-supplied CA.
        if config.insecure:
            pinned["verify_ssl"] = False
            pinned["ssl_ca_cert"] = None
        if config.tls_server_name:
            pinned["tls_server_name"] = config.tls_server_name
        if config.cluster_ca_certificate:
            pinned["ssl_ca_cert"] = pem_file(config.cluster_ca_certificate)
        if config.client_certificate:
            pinned["cert_file"] = pem_file(config.client_certificate)
        if host:
            pinned["host"] = host
        if config.client_key:
            pinned["key_file"] = pem_file(config.client_key.get_secret_value())
        if config.proxy_url:
            pinned["proxy"] = config.proxy_url
        for attr, value in pinned.items():
            setattr(configuration, attr, value)

        # One credential applies: bearer token, else exec, else basic auth.
        if config.token:
            self._set_authorization(configuration, f"Bearer {config.token.get_secret_value()}")
        elif config.exec is not None:
            apply_exec_credential(configuration, config.exec)
        elif config.username:
            password = config.password.get_secret_value() if config.password else ""
            basic = urllib3.util.make_headers(basic_auth=f"{config.username}:{password}")
            self._set_authorization(configuration, basic["authorization"])
        elif pinned and configuration.refresh_api_key_hook is not None:
            configuration.refresh_api_key_hook = PinnedSettingsHook(
                configuration.refresh_api_key_hook, pinned
            )

    @staticmethod
    def _set_authorization(configuration: Any, value: str) -> None:
        # The loaders' refresh hook would restore the file credential.
        configuration.refresh_api_key_hook = None
        configuration.api_key[AUTH_KEY] = value


__all__ = [
    "DEFAULT_KUBECONFIG",
    "KUBE_CONFIG_PATHS_ENV",
    "ConfigResolver",
    "default_user_agent",
    "parse_host",
]
