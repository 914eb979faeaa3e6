"""Exception hierarchy for valsoperator-provider.

Every failure raised by the provider keeps its classification on the way up
to the caller, so the host can decide what to report and what to retry.

Exception Hierarchy:
    ValsProviderError (base)
    ├── ConfigurationError (wraps ValueError)
    ├── ObjectStoreError
    │   ├── ObjectNotFoundError
    │   ├── ObjectAlreadyExistsError   (retryable)
    │   ├── ObjectConflictError        (retryable)
    │   ├── TransportError (wraps ConnectionError)
    │   │   └── AccessDeniedError (wraps PermissionError)
    │   └── OperationCancelledError (wraps TimeoutError)
    └── DecodeError (wraps ValueError)

Example:
    >>> from valsoperator_provider.errors import ObjectNotFoundError
    >>> raise ObjectNotFoundError(kind="ValsSecret", namespace="default", name="db")
    ObjectNotFoundError: ValsSecret 'default/db' not found
"""

from __future__ import annotations


class ValsProviderError(Exception):
    """Base exception for all provider errors.

    Attributes:
        message: Human-readable error message.
    """

    retryable: bool = False

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(ValsProviderError, ValueError):
    """Raised when the connection configuration cannot be resolved.

    Covers a malformed host and malformed or unusable credential files.

    Attributes:
        field: The configuration input at fault, if known.
        reason: Why the input was rejected.
    """

    def __init__(self, reason: str, *, field: str = "") -> None:
        self.field = field
        self.reason = reason
        message = "Invalid provider configuration"
        if field:
            message = f"{message} for '{field}'"
        message = f"{message}: {reason}"
        ValsProviderError.__init__(self, message)


class ObjectStoreError(ValsProviderError):
    """Base class for failures of a single object-store call.

    Attributes:
        kind: Kind of the object addressed by the call.
        namespace: Namespace of the object.
        name: Name of the object, empty when not yet known.
        reason: Additional context from the store.
    """

    summary = "object store call failed"

    def __init__(
        self,
        *,
        kind: str = "",
        namespace: str = "",
        name: str = "",
        reason: str = "",
    ) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.reason = reason
        ValsProviderError.__init__(self, self._format())

    @property
    def identity(self) -> str:
        """Return the object identity as ``namespace/name``."""
        return f"{self.namespace}/{self.name}"

    def _format(self) -> str:
        subject = f"{self.kind or 'object'} '{self.identity}'"
        message = f"{subject} {self.summary}"
        if self.reason:
            message = f"{message}: {self.reason}"
        return message


class ObjectNotFoundError(ObjectStoreError):
    """Raised when the addressed object does not exist.

    This is the expected signal the reconciler branches on; for a pure read
    it is a valid terminal outcome.
    """

    summary = "not found"


class ObjectAlreadyExistsError(ObjectStoreError):
    """Raised when create loses a race against a concurrent create."""

    summary = "already exists"
    retryable = True


class ObjectConflictError(ObjectStoreError):
    """Raised when update carries a stale version token."""

    summary = "was modified concurrently (stale resourceVersion)"
    retryable = True


class TransportError(ObjectStoreError, ConnectionError):
    """Raised on network, server or protocol failures talking to the store.

    Attributes:
        status: HTTP status reported by the API server, if any.
    """

    summary = "could not be reached"

    def __init__(
        self,
        *,
        kind: str = "",
        namespace: str = "",
        name: str = "",
        reason: str = "",
        status: int | None = None,
    ) -> None:
        self.status = status
        ObjectStoreError.__init__(
            self, kind=kind, namespace=namespace, name=name, reason=reason
        )

    def _format(self) -> str:
        message = ObjectStoreError._format(self)
        if self.status is not None:
            message = f"{message} (HTTP {self.status})"
        return message


class AccessDeniedError(TransportError, PermissionError):
    """Raised when the API server rejects the credentials or the verb."""

    summary = "access denied"


class OperationCancelledError(ObjectStoreError, TimeoutError):
    """Raised when a call is cancelled or runs past its deadline."""

    summary = "operation cancelled"


class DecodeError(ValsProviderError, ValueError):
    """Raised when a store document does not match the expected shape.

    Attributes:
        kind: Kind being decoded.
        field: Dotted path of the offending field.
        reason: Why decoding failed.
    """

    def __init__(self, *, kind: str, field: str = "", reason: str) -> None:
        self.kind = kind
        self.field = field
        self.reason = reason
        message = f"Cannot decode {kind} document"
        if field:
            message = f"{message} at '{field}'"
        message = f"{message}: {reason}"
        ValsProviderError.__init__(self, message)


__all__ = [
    "AccessDeniedError",
    "ConfigurationError",
    "DecodeError",
    "ObjectAlreadyExistsError",
    "ObjectConflictError",
    "ObjectNotFoundError",
    "ObjectStoreError",
    "OperationCancelledError",
    "TransportError",
    "ValsProviderError",
]
