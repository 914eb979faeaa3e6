"""Kind-agnostic access to namespaced custom objects.

``DynamicObjectClient`` is the narrow seam the reconciler depends on: get,
create, update and delete of generic documents addressed by a
``ResourceDescriptor``. ``KubernetesObjectClient`` implements it over
``kubernetes.client.CustomObjectsApi`` and translates ``ApiException`` into
the provider's error hierarchy. It performs no business logic.

Example:
    >>> from kubernetes import client
    >>> store = KubernetesObjectClient(client.CustomObjectsApi(api_client))
    >>> obj = store.get(VALS_SECRET, "default", "db")
    >>> obj.resource_version
    '4711'
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Protocol

import structlog
import urllib3
from kubernetes.client.exceptions import ApiException
from opentelemetry import trace

from valsoperator_provider.cancellation import CancellationToken
from valsoperator_provider.errors import (
    AccessDeniedError,
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
    ObjectStoreError,
    OperationCancelledError,
    TransportError,
)
from valsoperator_provider.objects import ManagedObject, ResourceDescriptor
from valsoperator_provider.tracing import get_tracer, store_span

logger = structlog.get_logger(__name__)


class DynamicObjectClient(Protocol):
    """Generic CRUD over namespaced objects of any registered kind."""

    def get(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        """Fetch an object; raises ObjectNotFoundError when it does not exist."""
        ...

    def create(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        """Create an object; raises ObjectAlreadyExistsError on a lost race."""
        ...

    def update(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        """Replace an object; raises ObjectConflictError on a stale token."""
        ...

    def delete(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Delete an object; raises ObjectNotFoundError when it does not exist."""
        ...


def _api_reason(e: ApiException) -> str:
    """Extract the API server's Status message, falling back to the HTTP reason."""
    body = getattr(e, "body", None)
    if body:
        try:
            status = json.loads(body)
        except (TypeError, ValueError):
            status = None
        if isinstance(status, dict) and status.get("message"):
            return str(status["message"])
    return str(e.reason or "")


def translate_api_exception(
    operation: str,
    e: ApiException,
    *,
    kind: str,
    namespace: str,
    name: str,
) -> ObjectStoreError:
    """Map an ``ApiException`` onto the provider's store error hierarchy.

    404 is not-found; 409 is already-exists on create and conflict on
    update; 401 and 403 are access denied; everything else is a transport
    failure carrying the HTTP status.
    """
    reason = _api_reason(e)
    identity = {"kind": kind, "namespace": namespace, "name": name}
    if e.status == 404:
        return ObjectNotFoundError(**identity, reason=reason)
    if e.status == 409 and operation == "create":
        return ObjectAlreadyExistsError(**identity, reason=reason)
    if e.status == 409 and operation == "update":
        return ObjectConflictError(**identity, reason=reason)
    if e.status in (401, 403):
        return AccessDeniedError(**identity, reason=reason, status=e.status)
    return TransportError(**identity, reason=reason, status=e.status)


@contextmanager
def api_call(
    tracer: trace.Tracer,
    operation: str,
    *,
    kind: str,
    namespace: str,
    name: str,
    cancel: CancellationToken | None = None,
) -> Iterator[dict[str, Any]]:
    """Run one Kubernetes API call inside a span with error translation.

    Checks ``cancel`` before the call and yields the extra keyword arguments
    (``_request_timeout``) the call must receive.

    Raises:
        OperationCancelledError: If cancelled before the call or timed out
            after the deadline.
        ObjectStoreError: Translated ``ApiException`` or transport failure.
    """
    request_kwargs: dict[str, Any] = {}
    with store_span(tracer, operation, kind=kind, namespace=namespace, name=name):
        if cancel is not None:
            cancel.check(kind=kind, namespace=namespace, name=name)
            remaining = cancel.remaining()
            if remaining is not None:
                request_kwargs["_request_timeout"] = remaining

        try:
            yield request_kwargs
        except ApiException as e:
            error = translate_api_exception(
                operation, e, kind=kind, namespace=namespace, name=name
            )
            logger.debug(
                "store call failed",
                operation=operation,
                kind=kind,
                namespace=namespace,
                name=name,
                status=e.status,
                error_type=type(error).__name__,
            )
            raise error from e
        except urllib3.exceptions.HTTPError as e:
            if cancel is not None and cancel.cancelled:
                raise OperationCancelledError(
                    kind=kind, namespace=namespace, name=name, reason="deadline exceeded"
                ) from e
            raise TransportError(kind=kind, namespace=namespace, name=name, reason=str(e)) from e

        logger.debug(
            "store call succeeded",
            operation=operation,
            kind=kind,
            namespace=namespace,
            name=name,
        )


def run_cancellable(
    call: Callable[..., Any],
    cancel: CancellationToken | None,
    identity: Mapping[str, str],
    **kwargs: Any,
) -> Any:
    """Issue one API call, abandoning it when ``cancel`` fires mid-flight.

    Without a token the call runs synchronously. With one it is issued with
    ``async_req=True`` on the ApiClient's thread pool while this thread waits
    in short slices; an abandoned request still completes in the background.

    Args:
        call: Bound ``kubernetes.client`` API method.
        cancel: Token observed while the request is in flight.
        identity: ``kind``, ``namespace`` and ``name`` for errors and logs.
        **kwargs: Arguments of the API method.

    Raises:
        OperationCancelledError: If ``cancel`` fires before the response.
    """
    if cancel is None:
        return call(**kwargs)
    pending = call(async_req=True, **kwargs)
    try:
        cancel.wait_for(pending, **identity)
    except OperationCancelledError as e:
        logger.warning(
            "abandoned in-flight store call, the request may still complete",
            reason=e.reason,
            **identity,
        )
        raise
    return pending.get()


class KubernetesObjectClient:
    """``DynamicObjectClient`` backed by ``CustomObjectsApi``.

    Args:
        api: A ``kubernetes.client.CustomObjectsApi`` (or compatible mock).
        tracer: Tracer for per-call spans. Defaults to the provider tracer.
    """

    def __init__(self, api: Any, tracer: trace.Tracer | None = None) -> None:
        self._api = api
        self._tracer = tracer or get_tracer()

    def get(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        result = self._invoke(
            "get",
            descriptor,
            namespace,
            name,
            cancel,
            self._api.get_namespaced_custom_object,
            name=name,
        )
        return ManagedObject.from_document(result, kind=descriptor.kind)

    def create(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        result = self._invoke(
            "create",
            descriptor,
            namespace,
            document.name,
            cancel,
            self._api.create_namespaced_custom_object,
            body=document.to_document(),
        )
        return ManagedObject.from_document(result, kind=descriptor.kind)

    def update(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        """Replace an object. ``document`` must carry the version token read last.

        Raises:
            ValueError: If ``document`` has no resourceVersion.
        """
        if not document.resource_version:
            msg = (
                f"update of {descriptor.kind} '{namespace}/{document.name}' "
                "requires a resourceVersion"
            )
            raise ValueError(msg)
        result = self._invoke(
            "update",
            descriptor,
            namespace,
            document.name,
            cancel,
            self._api.replace_namespaced_custom_object,
            name=document.name,
            body=document.to_document(),
        )
        return ManagedObject.from_document(result, kind=descriptor.kind)

    def delete(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        self._invoke(
            "delete",
            descriptor,
            namespace,
            name,
            cancel,
            self._api.delete_namespaced_custom_object,
            name=name,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _invoke(
        self,
        operation: str,
        descriptor: ResourceDescriptor,
        namespace: str,
        object_name: str,
        cancel: CancellationToken | None,
        call: Callable[..., Any],
        **kwargs: Any,
    ) -> Any:
        with api_call(
            self._tracer,
            operation,
            kind=descriptor.kind,
            namespace=namespace,
            name=object_name,
            cancel=cancel,
        ) as request_kwargs:
            return run_cancellable(
                call,
                cancel,
                {"kind": descriptor.kind, "namespace": namespace, "name": object_name},
                group=descriptor.group,
                version=descriptor.version,
                namespace=namespace,
                plural=descriptor.plural,
                **kwargs,
                **request_kwargs,
            )


__all__ = [
    "DynamicObjectClient",
    "KubernetesObjectClient",
    "api_call",
    "run_cancellable",
    "translate_api_exception",
]
