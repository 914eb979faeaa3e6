"""valsoperator-provider: manage vals-operator resources as code.

Reconciles ValsSecret (``digitalis.io/v1``) and DbSecret
(``digitalis.io/v1beta1``) custom resources against a Kubernetes cluster
with create-or-update semantics, and looks up existing ValsSecrets and core
Secrets.

Example:
    >>> from valsoperator_provider import ProviderConfig, ValsOperatorProvider
    >>> provider = ValsOperatorProvider.configure(ProviderConfig(config_context="kind-vals"))
    >>> provider.vals_secrets.lookup("default", "db")
"""

from __future__ import annotations

from typing import Any

__version__ = "0.1.0"
__all__ = [
    "ConfigResolver",
    "DbSecretSpec",
    "ProviderConfig",
    "ValsOperatorProvider",
    "ValsProviderError",
    "ValsSecretSpec",
]

_LAZY_IMPORTS = {
    "ConfigResolver": "valsoperator_provider.resolver",
    "DbSecretSpec": "valsoperator_provider.models",
    "ProviderConfig": "valsoperator_provider.config",
    "ValsOperatorProvider": "valsoperator_provider.provider",
    "ValsProviderError": "valsoperator_provider.errors",
    "ValsSecretSpec": "valsoperator_provider.models",
}


# Lazy imports keep the kubernetes client off the import path until needed
def __getattr__(name: str) -> Any:
    """Lazy import of public components."""
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    import importlib

    return getattr(importlib.import_module(module_name), name)
