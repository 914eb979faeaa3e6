"""Desired-state models for the ValsSecret and DbSecret resources.

These are the typed shapes the host hands to the adapters. Identity is the
``(namespace, name)`` pair. Entry names inside ``secret_ref`` and
``template`` become map keys on the wire, so duplicates are rejected here.

Example:
    >>> from valsoperator_provider.models import DbSecretSpec, RolloutTarget
    >>> spec = DbSecretSpec(
    ...     name="example",
    ...     namespace="default",
    ...     vault_role="role",
    ...     vault_mount="cass000",
    ...     rollout=[RolloutTarget(kind="Deployment", name="my-app")],
    ... )
    >>> spec.identity
    ('default', 'example')
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TTL = 3600
DEFAULT_SECRET_TYPE = "Opaque"

_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"


class WorkloadKind(str, Enum):
    """Workload kinds that can be restarted after a credential rotation."""

    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"


class SecretReference(BaseModel):
    """One entry of a ValsSecret: a named reference to an external value.

    Attributes:
        name: Key of the entry in the generated secret.
        ref: Locator of the external value (e.g. ``ref+vault://...``).
        encoding: Optional encoding tag (e.g. ``base64``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    ref: str = Field(..., min_length=1)
    encoding: str | None = None


class TemplateEntry(BaseModel):
    """A named template rendered into the generated secret."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    value: str


class RolloutTarget(BaseModel):
    """A workload restarted after the database credentials rotate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: WorkloadKind
    name: str = Field(..., min_length=1)


def _unique_names(entries: list, field: str) -> list:
    seen: set[str] = set()
    for entry in entries:
        if entry.name in seen:
            msg = f"duplicate {field} entry name: {entry.name!r}"
            raise ValueError(msg)
        seen.add(entry.name)
    return entries


class _ManagedSpec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=253, pattern=_NAME_PATTERN)
    namespace: str = Field(
        ...,
        min_length=1,
        max_length=63,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$",
    )

    @property
    def identity(self) -> tuple[str, str]:
        """Return the immutable ``(namespace, name)`` identity."""
        return (self.namespace, self.name)


class ValsSecretSpec(_ManagedSpec):
    """Desired state of a ValsSecret.

    Attributes:
        name: Object and generated secret name.
        namespace: Namespace of the object.
        secret_ref: External references, keyed by entry name on the wire.
        template: Templates, keyed by entry name on the wire.
        type: Kubernetes secret type of the generated secret.
        ttl: Seconds before the operator refreshes the values.
    """

    secret_ref: list[SecretReference] = Field(default_factory=list)
    template: list[TemplateEntry] = Field(default_factory=list)
    type: str = Field(default=DEFAULT_SECRET_TYPE, min_length=1)
    ttl: int = Field(default=DEFAULT_TTL, ge=0)

    @field_validator("secret_ref")
    @classmethod
    def _unique_refs(cls, v: list[SecretReference]) -> list[SecretReference]:
        return _unique_names(v, "secret_ref")

    @field_validator("template")
    @classmethod
    def _unique_templates(cls, v: list[TemplateEntry]) -> list[TemplateEntry]:
        return _unique_names(v, "template")


class DbSecretSpec(_ManagedSpec):
    """Desired state of a DbSecret.

    Attributes:
        vault_role: Vault role allowed to issue the credentials.
        vault_mount: Path of the database secrets engine.
        template: Templates, keyed by entry name on the wire.
        rollout: Workloads restarted after rotation, in order.
    """

    vault_role: str = Field(..., min_length=1)
    vault_mount: str = Field(..., min_length=1)
    template: list[TemplateEntry] = Field(default_factory=list)
    rollout: list[RolloutTarget] = Field(default_factory=list)

    @field_validator("template")
    @classmethod
    def _unique_templates(cls, v: list[TemplateEntry]) -> list[TemplateEntry]:
        return _unique_names(v, "template")


class ValsSecretSummary(BaseModel):
    """Read-only projection of a ValsSecret for pure lookups."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    type: str = DEFAULT_SECRET_TYPE


class SecretSummary(BaseModel):
    """Read-only projection of a core ``v1/Secret``."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    type: str = DEFAULT_SECRET_TYPE


__all__ = [
    "DEFAULT_SECRET_TYPE",
    "DEFAULT_TTL",
    "DbSecretSpec",
    "RolloutTarget",
    "SecretReference",
    "SecretSummary",
    "TemplateEntry",
    "ValsSecretSpec",
    "ValsSecretSummary",
    "WorkloadKind",
]
