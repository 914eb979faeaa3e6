"""Generic object documents exchanged with the Kubernetes object store.

A ``ResourceDescriptor`` addresses a kind (group, version, plural) and knows
the singular kind name stamped onto new documents. A ``ManagedObject`` is the
generic, versioned document itself.

Example:
    >>> from valsoperator_provider.objects import ResourceDescriptor
    >>> descriptor = ResourceDescriptor(
    ...     group="digitalis.io", version="v1", plural="valssecrets", kind="ValsSecret"
    ... )
    >>> descriptor.api_version
    'digitalis.io/v1'
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from valsoperator_provider.errors import DecodeError


class ResourceDescriptor(BaseModel):
    """Static address of an object kind in the store.

    Attributes:
        group: API group, empty for the core group.
        version: API version within the group.
        plural: Plural resource name used in request paths.
        kind: Singular kind name stamped onto documents.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    group: str = Field(default="", description="API group, empty for core")
    version: str = Field(..., min_length=1)
    plural: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)

    @property
    def api_version(self) -> str:
        """Return the ``apiVersion`` stamp for documents of this kind."""
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    def __str__(self) -> str:
        if not self.group:
            return f"{self.plural}.{self.version}"
        return f"{self.plural}.{self.version}.{self.group}"


class ObjectMeta(BaseModel):
    """Identity and version token of a stored object.

    ``resource_version`` is only ever copied from a read of the same object;
    it is never produced locally.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    resource_version: str | None = Field(default=None, alias="resourceVersion")


class ManagedObject(BaseModel):
    """Generic document exchanged with the object store.

    Attributes:
        api_version: ``<group>/<version>`` stamp.
        kind: Singular kind name.
        metadata: Identity plus optional version token.
        spec: Kind-specific nested payload.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion")
    kind: str
    metadata: ObjectMeta
    spec: dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def resource_version(self) -> str | None:
        return self.metadata.resource_version

    def with_resource_version(self, resource_version: str) -> ManagedObject:
        """Return a copy carrying the given version token."""
        metadata = self.metadata.model_copy(update={"resource_version": resource_version})
        return self.model_copy(update={"metadata": metadata})

    def to_document(self) -> dict[str, Any]:
        """Serialize to the wire shape sent to the API server."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: Mapping[str, Any], *, kind: str = "") -> ManagedObject:
        """Parse a wire document returned by the API server.

        Args:
            document: Decoded JSON body.
            kind: Kind expected, used in error messages.

        Returns:
            The parsed object.

        Raises:
            DecodeError: If the envelope is malformed.
        """
        if not isinstance(document, Mapping):
            raise DecodeError(
                kind=kind or "object",
                reason=f"expected a mapping, got {type(document).__name__}",
            )
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise decode_error(kind or str(document.get("kind", "object")), e) from e


def decode_error(kind: str, error: ValidationError, *, prefix: str = "") -> DecodeError:
    """Translate the first pydantic validation failure into a DecodeError."""
    first = error.errors()[0]
    parts = [prefix] if prefix else []
    parts.extend(str(part) for part in first["loc"])
    return DecodeError(kind=kind, field=".".join(parts), reason=first["msg"])


__all__ = ["ManagedObject", "ObjectMeta", "ResourceDescriptor", "decode_error"]
