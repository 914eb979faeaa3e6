"""CLI utility functions and error handling.

Errors go to stderr as plain text with a non-zero exit code chosen from the
provider error's classification, so scripts and CI jobs can tell a missing
object from a conflict worth retrying.

Example:
    from valsoperator_provider.cli.utils import ExitCode, error_exit

    error_exit("ValsSecret not found", exit_code=ExitCode.NOT_FOUND, name="db")
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

from valsoperator_provider.errors import (
    AccessDeniedError,
    ConfigurationError,
    DecodeError,
    ObjectAlreadyExistsError,
    ObjectConflictError,
    ObjectNotFoundError,
    OperationCancelledError,
    TransportError,
)

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for valsop commands."""

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, missing required options)."""

    NOT_FOUND = 3
    """Addressed object does not exist."""

    PERMISSION_ERROR = 4
    """API server rejected the credentials or the verb."""

    VALIDATION_ERROR = 5
    """Configuration or document validation failed."""

    CONFLICT = 6
    """Concurrent modification; retrying may succeed."""

    CANCELLED = 7
    """Deadline exceeded or cancelled."""

    NETWORK_ERROR = 8
    """API server unreachable or failing."""


# Most specific classes first; AccessDeniedError is a TransportError.
_EXIT_CODES: tuple[tuple[type[Exception], ExitCode], ...] = (
    (ObjectNotFoundError, ExitCode.NOT_FOUND),
    (AccessDeniedError, ExitCode.PERMISSION_ERROR),
    (ObjectConflictError, ExitCode.CONFLICT),
    (ObjectAlreadyExistsError, ExitCode.CONFLICT),
    (OperationCancelledError, ExitCode.CANCELLED),
    (TransportError, ExitCode.NETWORK_ERROR),
    (ConfigurationError, ExitCode.VALIDATION_ERROR),
    (DecodeError, ExitCode.VALIDATION_ERROR),
)


def exit_code_for(exc: Exception) -> ExitCode:
    """Return the exit code matching an exception's classification."""
    for error_type, code in _EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return ExitCode.GENERAL_ERROR


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Object not found", name="db")
        # Output: Error: Object not found (name=db)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(exit_code)


def success(message: str) -> None:
    """Print command output to stdout."""
    click.echo(message)


__all__ = [
    "ExitCode",
    "error",
    "error_exit",
    "exit_code_for",
    "success",
]
