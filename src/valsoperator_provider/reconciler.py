"""Create-or-update of a desired object against the object store.

``UpsertReconciler.upsert`` makes the stored object match the desired spec:

1. Encode the desired spec (no version token).
2. ``get`` the current object.
3. Not found: ``create``. Any other failure of ``get`` propagates unchanged.
4. Found: copy its ``resourceVersion`` onto the desired document and
   ``update``. A stale token surfaces as ``ObjectConflictError``, which is
   retryable; the reconciler does not loop.
5. Decode the store's response and return it.

Example:
    >>> reconciler = UpsertReconciler(store)
    >>> observed = reconciler.upsert(codec, ValsSecretSpec(name="db", namespace="default"))
    >>> observed.ttl
    3600
"""

from __future__ import annotations

from typing import Any

import structlog
from opentelemetry import trace

from valsoperator_provider.cancellation import CancellationToken
from valsoperator_provider.client import DynamicObjectClient
from valsoperator_provider.codec import ModelCodec
from valsoperator_provider.errors import DecodeError, ObjectNotFoundError
from valsoperator_provider.objects import ResourceDescriptor
from valsoperator_provider.tracing import get_tracer, store_span

logger = structlog.get_logger(__name__)


class UpsertReconciler:
    """Kind-agnostic create-or-update over a ``DynamicObjectClient``.

    Args:
        client: Object store client.
        tracer: Tracer for reconcile spans. Defaults to the provider tracer.
    """

    def __init__(self, client: DynamicObjectClient, tracer: trace.Tracer | None = None) -> None:
        self._client = client
        self._tracer = tracer or get_tracer()

    def upsert(
        self,
        codec: ModelCodec[Any],
        spec: Any,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Create or update the object described by ``spec``.

        Args:
            codec: Codec of the object's kind.
            spec: Desired state.
            cancel: Optional cancellation token shared by every store call.

        Returns:
            The observed state decoded from the store's response.

        Raises:
            ObjectStoreError: Any store failure other than not-found on get.
            DecodeError: If the stored object has no version token or the
                response does not decode.
        """
        descriptor = codec.descriptor
        desired = codec.encode(spec)
        namespace, name = desired.namespace, desired.name
        log = logger.bind(kind=descriptor.kind, namespace=namespace, name=name)

        with store_span(
            self._tracer, "upsert", kind=descriptor.kind, namespace=namespace, name=name
        ) as span:
            try:
                current = self._client.get(descriptor, namespace, name, cancel=cancel)
            except ObjectNotFoundError:
                span.set_attribute("valsoperator.branch", "create")
                log.info("creating object")
                observed = self._client.create(descriptor, namespace, desired, cancel=cancel)
            else:
                if not current.resource_version:
                    raise DecodeError(
                        kind=descriptor.kind,
                        field="metadata.resourceVersion",
                        reason="stored object carries no version token",
                    )
                span.set_attribute("valsoperator.branch", "update")
                log.info("updating object", resource_version=current.resource_version)
                observed = self._client.update(
                    descriptor,
                    namespace,
                    desired.with_resource_version(current.resource_version),
                    cancel=cancel,
                )

            return codec.decode(observed)

    def read(
        self,
        codec: ModelCodec[Any],
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Fetch and decode an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        current = self._client.get(codec.descriptor, namespace, name, cancel=cancel)
        return codec.decode(current)

    def delete(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        logger.info("deleting object", kind=descriptor.kind, namespace=namespace, name=name)
        self._client.delete(descriptor, namespace, name, cancel=cancel)


__all__ = ["UpsertReconciler"]
