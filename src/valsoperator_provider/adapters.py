"""Per-kind adapters between desired-state models and the object store.

An adapter binds a ``ResourceDescriptor`` and a ``SpecLayout`` to a codec
and the shared ``UpsertReconciler``. Adding a kind means declaring a
descriptor and a layout; the upsert algorithm is never duplicated.

Example:
    >>> adapter = ValsSecretAdapter(reconciler)
    >>> observed = adapter.upsert(ValsSecretSpec(name="db", namespace="default"))
    >>> adapter.lookup("default", "db").type
    'Opaque'
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Generic, TypeVar

import structlog
from opentelemetry import trace
from pydantic import BaseModel

from valsoperator_provider.cancellation import CancellationToken
from valsoperator_provider.client import api_call, run_cancellable
from valsoperator_provider.codec import DbSecretLayout, ModelCodec, SpecLayout, ValsSecretLayout
from valsoperator_provider.errors import ObjectNotFoundError
from valsoperator_provider.models import (
    DEFAULT_SECRET_TYPE,
    DbSecretSpec,
    SecretSummary,
    ValsSecretSpec,
    ValsSecretSummary,
)
from valsoperator_provider.objects import ResourceDescriptor
from valsoperator_provider.reconciler import UpsertReconciler
from valsoperator_provider.tracing import get_tracer

logger = structlog.get_logger(__name__)

SpecT = TypeVar("SpecT", bound=BaseModel)

VALS_SECRET = ResourceDescriptor(
    group="digitalis.io", version="v1", plural="valssecrets", kind="ValsSecret"
)
DB_SECRET = ResourceDescriptor(
    group="digitalis.io", version="v1beta1", plural="dbsecrets", kind="DbSecret"
)


class ResourceKindAdapter(Generic[SpecT]):
    """Generic adapter for one managed kind.

    Subclasses declare ``descriptor`` and ``layout``; both may also be
    passed to the constructor.

    Args:
        reconciler: Shared reconciler.
        descriptor: Kind address, overriding the class attribute.
        layout: Wire layout, overriding the class attribute.

    Raises:
        TypeError: If no descriptor or layout is available.
    """

    descriptor: ClassVar[ResourceDescriptor | None] = None
    layout: ClassVar[type[SpecLayout] | None] = None
    spec_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        reconciler: UpsertReconciler,
        descriptor: ResourceDescriptor | None = None,
        layout: type[SpecLayout] | None = None,
    ) -> None:
        if descriptor is None:
            descriptor = type(self).descriptor
        if layout is None:
            layout = type(self).layout
        if descriptor is None:
            msg = f"{type(self).__name__} has no resource descriptor"
            raise TypeError(msg)
        if layout is None:
            msg = f"{type(self).__name__} has no spec layout"
            raise TypeError(msg)
        self.codec: ModelCodec[SpecT] = ModelCodec(descriptor, layout)
        self._reconciler = reconciler

    @property
    def kind(self) -> str:
        return self.codec.descriptor.kind

    def parse(self, data: Mapping[str, Any]) -> SpecT:
        """Validate a desired-state mapping into this kind's spec model.

        Raises:
            pydantic.ValidationError: If the mapping does not match.
        """
        return self.spec_model.model_validate(data)  # type: ignore[return-value]

    def upsert(self, spec: SpecT, *, cancel: CancellationToken | None = None) -> SpecT:
        """Create or update the object and return the observed state."""
        return self._reconciler.upsert(self.codec, spec, cancel=cancel)

    def read(
        self, namespace: str, name: str, *, cancel: CancellationToken | None = None
    ) -> SpecT:
        """Return the stored state; raises ObjectNotFoundError when absent."""
        return self._reconciler.read(self.codec, namespace, name, cancel=cancel)

    def exists(
        self, namespace: str, name: str, *, cancel: CancellationToken | None = None
    ) -> bool:
        try:
            self.read(namespace, name, cancel=cancel)
        except ObjectNotFoundError:
            return False
        return True

    def delete(
        self, namespace: str, name: str, *, cancel: CancellationToken | None = None
    ) -> None:
        self._reconciler.delete(self.codec.descriptor, namespace, name, cancel=cancel)

    def apply(
        self,
        desired: SpecT,
        prior: SpecT | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> SpecT:
        """Apply ``desired``, recreating the object when its identity changed.

        Name and namespace are immutable. When ``prior`` has a different
        identity it is deleted first (already gone is fine), then
        ``desired`` is upserted.
        """
        if prior is not None and prior.identity != desired.identity:  # type: ignore[attr-defined]
            namespace, name = prior.identity  # type: ignore[attr-defined]
            logger.info(
                "identity changed, replacing object",
                kind=self.kind,
                old=f"{namespace}/{name}",
                new="/".join(desired.identity),  # type: ignore[attr-defined]
            )
            try:
                self.delete(namespace, name, cancel=cancel)
            except ObjectNotFoundError:
                logger.debug(
                    "prior object already gone", kind=self.kind, namespace=namespace, name=name
                )
        return self.upsert(desired, cancel=cancel)


class ValsSecretAdapter(ResourceKindAdapter[ValsSecretSpec]):
    """``digitalis.io/v1 ValsSecret`` resources."""

    descriptor = VALS_SECRET
    layout = ValsSecretLayout
    spec_model = ValsSecretSpec

    def lookup(
        self, namespace: str, name: str, *, cancel: CancellationToken | None = None
    ) -> ValsSecretSummary:
        """Read-only projection of an existing ValsSecret.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        spec = self.read(namespace, name, cancel=cancel)
        return ValsSecretSummary(name=spec.name, namespace=spec.namespace, type=spec.type)


class DbSecretAdapter(ResourceKindAdapter[DbSecretSpec]):
    """``digitalis.io/v1beta1 DbSecret`` resources."""

    descriptor = DB_SECRET
    layout = DbSecretLayout
    spec_model = DbSecretSpec


class SecretDataSource:
    """Read-only lookup of core ``v1/Secret`` objects.

    Args:
        api: A ``kubernetes.client.CoreV1Api`` (or compatible mock).
        tracer: Tracer for per-call spans. Defaults to the provider tracer.
    """

    kind = "Secret"

    def __init__(self, api: Any, tracer: trace.Tracer | None = None) -> None:
        self._api = api
        self._tracer = tracer or get_tracer()

    def read(
        self, namespace: str, name: str, *, cancel: CancellationToken | None = None
    ) -> SecretSummary:
        """Return the secret's identity and type; never its data.

        Raises:
            ObjectNotFoundError: If the secret does not exist.
            TransportError: If the API server cannot be reached.
        """
        with api_call(
            self._tracer, "get", kind=self.kind, namespace=namespace, name=name, cancel=cancel
        ) as request_kwargs:
            secret = run_cancellable(
                self._api.read_namespaced_secret,
                cancel,
                {"kind": self.kind, "namespace": namespace, "name": name},
                name=name,
                namespace=namespace,
                **request_kwargs,
            )
        return SecretSummary(
            name=secret.metadata.name or name,
            namespace=secret.metadata.namespace or namespace,
            type=secret.type or DEFAULT_SECRET_TYPE,
        )


__all__ = [
    "DB_SECRET",
    "VALS_SECRET",
    "DbSecretAdapter",
    "ResourceKindAdapter",
    "SecretDataSource",
    "ValsSecretAdapter",
]
