"""Mapping between typed desired state and generic object documents.

Each kind declares its wire spec as a ``SpecLayout``: a pydantic model whose
fields are exactly the keys of the document's ``spec``. ``ModelCodec`` stamps
the envelope (apiVersion, kind, metadata) around it.

Ordered entry lists (``secret_ref``, ``template``) become keyed maps on the
wire, so a round trip keeps membership and values but not order.

Example:
    >>> from valsoperator_provider.adapters import VALS_SECRET
    >>> codec = ModelCodec(VALS_SECRET, ValsSecretLayout)
    >>> doc = codec.encode(ValsSecretSpec(name="db", namespace="default"))
    >>> doc.to_document()["spec"]["ttl"]
    3600
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from valsoperator_provider.errors import DecodeError
from valsoperator_provider.models import (
    DEFAULT_SECRET_TYPE,
    DEFAULT_TTL,
    DbSecretSpec,
    RolloutTarget,
    SecretReference,
    TemplateEntry,
    ValsSecretSpec,
    WorkloadKind,
)
from valsoperator_provider.objects import (
    ManagedObject,
    ObjectMeta,
    ResourceDescriptor,
    decode_error,
)

SpecT = TypeVar("SpecT", bound=BaseModel)


class SpecLayout(BaseModel, ABC):
    """Declared field layout of a kind's ``spec`` payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    @abstractmethod
    def from_desired(cls, spec: Any) -> SpecLayout:
        """Build the wire layout from a desired-state model."""

    @abstractmethod
    def to_desired(self, metadata: ObjectMeta) -> Any:
        """Rebuild the desired-state model from the wire layout."""

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# ValsSecret
# =============================================================================


class ValsDataEntry(BaseModel):
    """Wire form of one external reference."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ref: str
    encoding: str | None = None

    @field_validator("encoding", mode="before")
    @classmethod
    def _empty_encoding(cls, v: Any) -> Any:
        # Older writers always sent the key, empty when unset.
        return None if v == "" else v


class ValsSecretLayout(SpecLayout):
    """``spec`` of ``digitalis.io/v1 ValsSecret``."""

    name: str | None = None
    ttl: int = Field(default=DEFAULT_TTL, strict=True)
    type: str = DEFAULT_SECRET_TYPE
    data: dict[str, ValsDataEntry] = Field(default_factory=dict)
    template: dict[str, str] = Field(default_factory=dict)

    @field_validator("ttl", "type", "data", "template", mode="before")
    @classmethod
    def _null_is_absent(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v

    @classmethod
    def from_desired(cls, spec: ValsSecretSpec) -> ValsSecretLayout:
        return cls(
            name=spec.name,
            ttl=spec.ttl,
            type=spec.type,
            data={
                ref.name: ValsDataEntry(ref=ref.ref, encoding=ref.encoding)
                for ref in spec.secret_ref
            },
            template={entry.name: entry.value for entry in spec.template},
        )

    def to_desired(self, metadata: ObjectMeta) -> ValsSecretSpec:
        return ValsSecretSpec(
            name=metadata.name,
            namespace=metadata.namespace,
            secret_ref=[
                SecretReference(name=key, ref=entry.ref, encoding=entry.encoding)
                for key, entry in self.data.items()
            ],
            template=[TemplateEntry(name=key, value=value) for key, value in self.template.items()],
            type=self.type,
            ttl=self.ttl,
        )


# =============================================================================
# DbSecret
# =============================================================================


class VaultBlock(BaseModel):
    """Wire form of the Vault role and mount of a DbSecret."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: str
    mount: str


class RolloutEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    kind: WorkloadKind


class DbSecretLayout(SpecLayout):
    """``spec`` of ``digitalis.io/v1beta1 DbSecret``."""

    vault: VaultBlock
    template: dict[str, str] = Field(default_factory=dict)
    rollout: list[RolloutEntry] = Field(default_factory=list)

    @field_validator("template", "rollout", mode="before")
    @classmethod
    def _null_is_absent(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v

    @classmethod
    def from_desired(cls, spec: DbSecretSpec) -> DbSecretLayout:
        return cls(
            vault=VaultBlock(role=spec.vault_role, mount=spec.vault_mount),
            template={entry.name: entry.value for entry in spec.template},
            rollout=[RolloutEntry(name=target.name, kind=target.kind) for target in spec.rollout],
        )

    def to_desired(self, metadata: ObjectMeta) -> DbSecretSpec:
        return DbSecretSpec(
            name=metadata.name,
            namespace=metadata.namespace,
            vault_role=self.vault.role,
            vault_mount=self.vault.mount,
            template=[TemplateEntry(name=key, value=value) for key, value in self.template.items()],
            rollout=[RolloutTarget(kind=entry.kind, name=entry.name) for entry in self.rollout],
        )


# =============================================================================
# Codec
# =============================================================================


class ModelCodec(Generic[SpecT]):
    """Encode desired state into documents of one kind and decode them back.

    Args:
        descriptor: Kind addressed by the documents.
        layout: Declared wire layout of the kind's ``spec``.
    """

    def __init__(self, descriptor: ResourceDescriptor, layout: type[SpecLayout]) -> None:
        self.descriptor = descriptor
        self.layout = layout

    def encode(self, spec: SpecT) -> ManagedObject:
        """Build a fresh document for ``spec``, without a version token."""
        return ManagedObject(
            api_version=self.descriptor.api_version,
            kind=self.descriptor.kind,
            metadata=ObjectMeta(name=spec.name, namespace=spec.namespace),  # type: ignore[attr-defined]
            spec=self.layout.from_desired(spec).to_wire(),
        )

    def decode(self, document: ManagedObject | Mapping[str, Any]) -> SpecT:
        """Decode a store document into the desired-state shape.

        Absent optional fields take their documented defaults; any other
        mismatch is an error.

        Raises:
            DecodeError: If the document does not match the layout.
        """
        kind = self.descriptor.kind
        if isinstance(document, ManagedObject):
            obj = document
        else:
            obj = ManagedObject.from_document(document, kind=kind)

        if obj.kind != kind:
            raise DecodeError(kind=kind, field="kind", reason=f"unexpected kind {obj.kind!r}")

        try:
            layout = self.layout.model_validate(obj.spec)
        except ValidationError as e:
            raise decode_error(kind, e, prefix="spec") from e

        try:
            return layout.to_desired(obj.metadata)
        except ValidationError as e:
            raise decode_error(kind, e) from e


__all__ = [
    "DbSecretLayout",
    "ModelCodec",
    "RolloutEntry",
    "SpecLayout",
    "ValsDataEntry",
    "ValsSecretLayout",
    "VaultBlock",
]
