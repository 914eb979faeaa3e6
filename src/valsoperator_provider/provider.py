"""Configured provider holding the shared, read-only handles.

``ValsOperatorProvider.configure`` runs once per provider lifetime: it
resolves the connection, builds the Kubernetes API client and the object
client, and wires the per-kind adapters to one reconciler. Nothing is
mutated afterwards.

Example:
    >>> provider = ValsOperatorProvider.configure(
    ...     ProviderConfig(config_path="~/.kube/config"), terraform_version="1.9.0"
    ... )
    >>> provider.vals_secrets.read("default", "db")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from kubernetes import client as k8s_client
from opentelemetry import trace

from valsoperator_provider.adapters import (
    DbSecretAdapter,
    ResourceKindAdapter,
    SecretDataSource,
    ValsSecretAdapter,
)
from valsoperator_provider.client import DynamicObjectClient, KubernetesObjectClient
from valsoperator_provider.config import ProviderConfig
from valsoperator_provider.connection import ConnectionConfig, build_api_client
from valsoperator_provider.reconciler import UpsertReconciler
from valsoperator_provider.resolver import ConfigResolver, default_user_agent
from valsoperator_provider.tracing import get_tracer

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValsOperatorProvider:
    """Pre-built handles shared by every resource and data source.

    Attributes:
        connection: The resolved connection configuration.
        object_client: Store client used by the reconciler.
        vals_secrets: Adapter for ValsSecret resources.
        db_secrets: Adapter for DbSecret resources.
        secrets: Read-only lookup of core Secrets.
        ignore_annotations: Annotation patterns collected from the config.
        ignore_labels: Label patterns collected from the config.
    """

    connection: ConnectionConfig
    object_client: DynamicObjectClient
    vals_secrets: ValsSecretAdapter
    db_secrets: DbSecretAdapter
    secrets: SecretDataSource
    ignore_annotations: tuple[str, ...] = ()
    ignore_labels: tuple[str, ...] = ()

    def adapter_for(self, kind: str) -> ResourceKindAdapter[Any]:
        """Return the adapter managing ``kind`` (case-insensitive).

        Raises:
            ValueError: If no adapter manages the kind.
        """
        for adapter in (self.vals_secrets, self.db_secrets):
            if adapter.kind.lower() == kind.lower():
                return adapter
        msg = f"Unknown resource kind: {kind!r}"
        raise ValueError(msg)

    @classmethod
    def from_clients(
        cls,
        object_client: DynamicObjectClient,
        core_api: Any,
        *,
        connection: ConnectionConfig | None = None,
        config: ProviderConfig | None = None,
        tracer: trace.Tracer | None = None,
    ) -> ValsOperatorProvider:
        """Wire adapters over already-built clients."""
        config = config or ProviderConfig()
        reconciler = UpsertReconciler(object_client, tracer=tracer)
        return cls(
            connection=connection or ConnectionConfig(),
            object_client=object_client,
            vals_secrets=ValsSecretAdapter(reconciler),
            db_secrets=DbSecretAdapter(reconciler),
            secrets=SecretDataSource(core_api, tracer=tracer),
            ignore_annotations=tuple(config.ignore_annotations),
            ignore_labels=tuple(config.ignore_labels),
        )

    @classmethod
    def configure(
        cls,
        config: ProviderConfig,
        terraform_version: str = "",
        *,
        user_agent: str | None = None,
        resolver: ConfigResolver | None = None,
        strict: bool = False,
    ) -> ValsOperatorProvider:
        """Resolve the configuration and build every client once.

        Args:
            config: Provider inputs.
            terraform_version: Host version used in the default user agent.
            user_agent: Explicit User-Agent, overriding the default.
            resolver: Resolver to use; defaults to one reading ``os.environ``.
            strict: Raise loader failures instead of degrading.

        Returns:
            The configured provider.

        Raises:
            ConfigurationError: If the host is malformed, or with ``strict``
                when loading credentials or running an exec command fails.
        """
        resolver = resolver or ConfigResolver()
        connection = resolver.resolve(
            config,
            user_agent=user_agent or default_user_agent(terraform_version),
            strict=strict,
        )
        api_client = build_api_client(connection)
        tracer = get_tracer()
        object_client = KubernetesObjectClient(
            k8s_client.CustomObjectsApi(api_client), tracer=tracer
        )
        logger.info(
            "provider configured",
            host=connection.host,
            degraded=connection.is_empty,
            ignore_annotations=len(config.ignore_annotations),
            ignore_labels=len(config.ignore_labels),
        )
        return cls.from_clients(
            object_client,
            k8s_client.CoreV1Api(api_client),
            connection=connection,
            config=config,
            tracer=tracer,
        )


__all__ = ["ValsOperatorProvider"]
