"""Integration tests for ValsSecret and DbSecret reconciliation in a live cluster.

Prerequisites:
    - A cluster reachable through the current kubeconfig (e.g. Kind)
    - vals-operator CRDs installed (valssecrets.digitalis.io, dbsecrets.digitalis.io)
"""

from __future__ import annotations

import json
import subprocess
from typing import Any

import pytest

from valsoperator_provider.errors import ObjectNotFoundError
from valsoperator_provider.models import (
    DbSecretSpec,
    RolloutTarget,
    SecretReference,
    TemplateEntry,
    ValsSecretSpec,
)
from valsoperator_provider.provider import ValsOperatorProvider

pytestmark = pytest.mark.integration


def _kubectl_json(*args: str) -> dict[str, Any]:
    result = subprocess.run(
        ["kubectl", *args, "-o", "json"],
        capture_output=True,
        text=True,
        timeout=30,
        check=True,
    )
    return json.loads(result.stdout)


class TestValsSecretLifecycle:
    """Create, update, look up and delete a ValsSecret."""

    def test_create_then_update(
        self, live_provider: ValsOperatorProvider, test_namespace: str
    ) -> None:
        """Test the first apply creates and the second updates in place."""
        adapter = live_provider.vals_secrets
        spec = ValsSecretSpec(
            name="db",
            namespace=test_namespace,
            secret_ref=[SecretReference(name="password", ref="ref+echo://s3cr3t")],
            template=[TemplateEntry(name="dsn", value="user:{{ .password }}")],
            ttl=120,
        )

        created = adapter.upsert(spec)
        assert created == spec

        stored = _kubectl_json("get", "valssecret", "db", "-n", test_namespace)
        first_version = stored["metadata"]["resourceVersion"]
        assert stored["spec"]["data"]["password"]["ref"] == "ref+echo://s3cr3t"

        updated = adapter.upsert(spec.model_copy(update={"ttl": 300}))
        assert updated.ttl == 300

        stored = _kubectl_json("get", "valssecret", "db", "-n", test_namespace)
        assert stored["spec"]["ttl"] == 300
        assert stored["metadata"]["resourceVersion"] != first_version

    def test_lookup_and_delete(
        self, live_provider: ValsOperatorProvider, test_namespace: str
    ) -> None:
        """Test lookup of an applied object, then its deletion."""
        adapter = live_provider.vals_secrets
        adapter.upsert(
            ValsSecretSpec(name="tls", namespace=test_namespace, type="kubernetes.io/tls")
        )

        summary = adapter.lookup(test_namespace, "tls")
        assert summary.type == "kubernetes.io/tls"

        adapter.delete(test_namespace, "tls")
        assert adapter.exists(test_namespace, "tls") is False

    def test_read_missing(
        self, live_provider: ValsOperatorProvider, test_namespace: str
    ) -> None:
        """Test reading a missing object raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            live_provider.vals_secrets.read(test_namespace, "missing")


class TestDbSecret:
    """Apply a DbSecret."""

    def test_apply(self, live_provider: ValsOperatorProvider, test_namespace: str) -> None:
        """Test the DbSecret is stored under digitalis.io/v1beta1."""
        spec = DbSecretSpec(
            name="example",
            namespace=test_namespace,
            vault_role="role",
            vault_mount="cass000",
            rollout=[RolloutTarget(kind="Deployment", name="my-app")],
        )

        observed = live_provider.db_secrets.upsert(spec)

        assert observed == spec
        stored = _kubectl_json("get", "dbsecret", "example", "-n", test_namespace)
        assert stored["apiVersion"] == "digitalis.io/v1beta1"
        assert stored["spec"]["vault"] == {"role": "role", "mount": "cass000"}


class TestSecretLookup:
    """Look up a core Secret."""

    def test_lookup(self, live_provider: ValsOperatorProvider, test_namespace: str) -> None:
        """Test name, namespace and type of a kubectl-created Secret."""
        subprocess.run(
            [
                "kubectl", "create", "secret", "generic", "creds",
                "-n", test_namespace, "--from-literal", "user=admin",
            ],
            capture_output=True,
            check=True,
        )

        summary = live_provider.secrets.read(test_namespace, "creds")

        assert summary.name == "creds"
        assert summary.namespace == test_namespace
        assert summary.type == "Opaque"
