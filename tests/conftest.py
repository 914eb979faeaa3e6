"""Pytest configuration for valsoperator-provider tests.

Fixtures:
    - fake_store: In-memory, versioned object store
    - reconciler: UpsertReconciler over the fake store
    - tracer_with_exporter: TracerProvider recording spans in memory
    - api_exception: Factory for kubernetes ApiException instances
    - write_kubeconfig: Writes kubeconfig files under tmp_path
    - reset_structlog: Restores structlog defaults after every test (autouse)
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
import yaml
from kubernetes.client.exceptions import ApiException
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from valsoperator_provider.cancellation import CancellationToken
from valsoperator_provider.errors import (
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
    ObjectStoreError,
)
from valsoperator_provider.objects import ManagedObject, ResourceDescriptor
from valsoperator_provider.reconciler import UpsertReconciler

# =============================================================================
# In-memory object store
# =============================================================================


class FakeObjectStore:
    """Versioned in-memory ``DynamicObjectClient``.

    Every write bumps a store-wide counter used as the resourceVersion, so a
    stale token is detected like the API server does. ``calls`` records
    ``(operation, namespace, name)`` and ``sent`` the documents passed to
    create/update. ``fail_next`` injects an error for the next call of an
    operation.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.sent: list[tuple[str, ManagedObject]] = []
        self.fail_next: dict[str, ObjectStoreError] = {}
        self._version = 0

    @staticmethod
    def _key(descriptor: ResourceDescriptor, namespace: str, name: str) -> tuple[str, str, str]:
        return (str(descriptor), namespace, name)

    def _record(self, operation: str, namespace: str, name: str) -> None:
        self.calls.append((operation, namespace, name))
        if operation in self.fail_next:
            raise self.fail_next.pop(operation)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    def seed(self, document: dict[str, Any], descriptor: ResourceDescriptor) -> str:
        """Store a raw document as if written by someone else; returns its version."""
        stored = copy.deepcopy(document)
        version = self._next_version()
        stored.setdefault("metadata", {})["resourceVersion"] = version
        meta = stored["metadata"]
        self.objects[self._key(descriptor, meta["namespace"], meta["name"])] = stored
        return version

    def touch(self, descriptor: ResourceDescriptor, namespace: str, name: str) -> str:
        """Simulate a concurrent writer bumping the stored version."""
        stored = self.objects[self._key(descriptor, namespace, name)]
        version = self._next_version()
        stored["metadata"]["resourceVersion"] = version
        return version

    def stored(self, descriptor: ResourceDescriptor, namespace: str, name: str) -> dict[str, Any]:
        return copy.deepcopy(self.objects[self._key(descriptor, namespace, name)])

    def get(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        self._record("get", namespace, name)
        if cancel is not None:
            cancel.check(kind=descriptor.kind, namespace=namespace, name=name)
        document = self.objects.get(self._key(descriptor, namespace, name))
        if document is None:
            raise ObjectNotFoundError(kind=descriptor.kind, namespace=namespace, name=name)
        return ManagedObject.from_document(copy.deepcopy(document), kind=descriptor.kind)

    def create(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        self._record("create", namespace, document.name)
        self.sent.append(("create", document))
        key = self._key(descriptor, namespace, document.name)
        if key in self.objects:
            raise ObjectAlreadyExistsError(
                kind=descriptor.kind, namespace=namespace, name=document.name
            )
        stored = document.to_document()
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = stored
        return ManagedObject.from_document(copy.deepcopy(stored), kind=descriptor.kind)

    def update(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        document: ManagedObject,
        *,
        cancel: CancellationToken | None = None,
    ) -> ManagedObject:
        self._record("update", namespace, document.name)
        self.sent.append(("update", document))
        key = self._key(descriptor, namespace, document.name)
        current = self.objects.get(key)
        if current is None:
            raise ObjectNotFoundError(
                kind=descriptor.kind, namespace=namespace, name=document.name
            )
        if current["metadata"]["resourceVersion"] != document.resource_version:
            raise ObjectConflictError(
                kind=descriptor.kind, namespace=namespace, name=document.name
            )
        stored = document.to_document()
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = stored
        return ManagedObject.from_document(copy.deepcopy(stored), kind=descriptor.kind)

    def delete(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        name: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        self._record("delete", namespace, name)
        key = self._key(descriptor, namespace, name)
        if key not in self.objects:
            raise ObjectNotFoundError(kind=descriptor.kind, namespace=namespace, name=name)
        del self.objects[key]


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def fake_store() -> FakeObjectStore:
    """Create an empty in-memory object store.

    Returns:
        FakeObjectStore with no objects.
    """
    return FakeObjectStore()


@pytest.fixture
def reconciler(fake_store: FakeObjectStore) -> UpsertReconciler:
    """Create an UpsertReconciler over the fake store.

    Args:
        fake_store: In-memory store fixture.

    Returns:
        UpsertReconciler wired to fake_store.
    """
    return UpsertReconciler(fake_store)


# =============================================================================
# Tracing fixtures
# =============================================================================


@pytest.fixture
def tracer_with_exporter() -> tuple[TracerProvider, InMemorySpanExporter]:
    """Create a TracerProvider with an InMemorySpanExporter for testing.

    Returns:
        Tuple of (TracerProvider, InMemorySpanExporter) for span verification.
    """
    exporter = InMemorySpanExporter()
    provider = TracerProvider(resource=Resource.create({}))
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider, exporter


# =============================================================================
# Kubernetes client fixtures
# =============================================================================


@pytest.fixture
def api_exception() -> Callable[..., ApiException]:
    """Factory creating ApiException instances with an optional Status message.

    Returns:
        Callable ``(status, reason="", message=None) -> ApiException``.
    """

    def _make(status: int, reason: str = "", message: str | None = None) -> ApiException:
        exc = ApiException(status=status, reason=reason)
        if message is not None:
            exc.body = json.dumps({"kind": "Status", "message": message})
        return exc

    return _make


# =============================================================================
# Kubeconfig fixtures
# =============================================================================


def kubeconfig_document(
    *,
    server: str = "https://filehost:6443",
    context: str = "file-context",
    cluster: str = "file-cluster",
    user: str = "file-user",
    token: str | None = "file-token",
    extra_cluster: dict[str, Any] | None = None,
    extra_user: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a minimal single-context kubeconfig mapping."""
    cluster_body: dict[str, Any] = {"server": server, **(extra_cluster or {})}
    user_body: dict[str, Any] = dict(extra_user or {})
    if token is not None:
        user_body["token"] = token
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": cluster, "cluster": cluster_body}],
        "users": [{"name": user, "user": user_body}],
        "contexts": [{"name": context, "context": {"cluster": cluster, "user": user}}],
        "current-context": context,
    }


@pytest.fixture
def write_kubeconfig(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a kubeconfig mapping to a file under tmp_path.

    Returns:
        Callable ``(document=None, name="kubeconfig", **kwargs) -> Path``;
        keyword arguments go to ``kubeconfig_document`` when no document
        is given.
    """

    def _write(
        document: dict[str, Any] | None = None, name: str = "kubeconfig", **kwargs: Any
    ) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document or kubeconfig_document(**kwargs)))
        return path

    return _write


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore structlog defaults after each test.

    The CLI configures logging against the stderr stream of the current
    CliRunner invocation, which is closed once the invocation ends.
    """
    yield
    structlog.reset_defaults()
