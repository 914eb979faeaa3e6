"""Pytest configuration for valsoperator-provider integration tests.

Fixtures here talk to a real cluster through the current kubeconfig. Tests
are skipped when kubectl cannot reach a cluster or when the vals-operator
CRDs are not installed. Inherits fixtures from the parent conftest.py.
"""

from __future__ import annotations

import subprocess
import uuid
from typing import TYPE_CHECKING

import pytest

from valsoperator_provider.config import ProviderConfig
from valsoperator_provider.provider import ValsOperatorProvider

if TYPE_CHECKING:
    from collections.abc import Generator

REQUIRED_CRDS = ("valssecrets.digitalis.io", "dbsecrets.digitalis.io")


def _kubectl(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["kubectl", *args],
        capture_output=True,
        text=True,
        timeout=30,
        check=False,
    )


def _kubectl_available() -> bool:
    """Check if kubectl is available and configured."""
    try:
        return _kubectl("cluster-info").returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError):
        return False


def _crds_installed() -> bool:
    return all(_kubectl("get", "crd", crd).returncode == 0 for crd in REQUIRED_CRDS)


@pytest.fixture(scope="session")
def cluster_required() -> None:
    """Skip the test if no cluster with the vals-operator CRDs is reachable."""
    if not _kubectl_available():
        pytest.skip("kubectl cannot reach a cluster")
    if not _crds_installed():
        pytest.skip("vals-operator CRDs are not installed")


@pytest.fixture
def test_namespace(cluster_required: None) -> Generator[str, None, None]:
    """Create and clean up a unique namespace for one test.

    Yields:
        Name of the created namespace.
    """
    ns = f"valsop-test-{uuid.uuid4().hex[:8]}"
    _kubectl("create", "namespace", ns)

    yield ns

    _kubectl("delete", "namespace", ns, "--ignore-not-found", "--wait=false")


@pytest.fixture
def live_provider(cluster_required: None) -> ValsOperatorProvider:
    """Configure a provider from the current kubeconfig.

    Returns:
        ValsOperatorProvider connected to the real API server.
    """
    return ValsOperatorProvider.configure(ProviderConfig(), strict=True)
