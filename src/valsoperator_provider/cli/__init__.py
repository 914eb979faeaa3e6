"""Command-line interface for valsoperator-provider.

Commands:
    valsop apply: Create or update a ValsSecret or DbSecret
    valsop get: Read a managed object
    valsop delete: Delete a managed object
    valsop lookup: Read-only lookup of a ValsSecret or core Secret

Exit Codes:
    0: Success
    1: General error
    2: Usage error (invalid arguments)
    3: Object not found
    4: Permission denied
    5: Validation error
    6: Conflict (retryable)
    7: Cancelled or deadline exceeded
    8: Network error
"""

from __future__ import annotations

from valsoperator_provider.cli.main import cli, main
from valsoperator_provider.cli.utils import ExitCode, error, error_exit, success

__all__ = [
    "ExitCode",
    "cli",
    "error",
    "error_exit",
    "main",
    "success",
]
