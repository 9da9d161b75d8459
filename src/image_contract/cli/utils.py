"""CLI utility functions and error handling.

Errors go to stderr as plain text with a non-zero exit code; reports go to
stdout (or to the files named by ``--output``).

Example:
    from image_contract.cli.utils import error_exit, ExitCode

    if not path.exists():
        error_exit("File not found", exit_code=ExitCode.FILE_NOT_FOUND, path=str(path))
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

from image_contract.errors import ImageContractError

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for CLI commands."""

    SUCCESS = 0
    """Command completed and the report passed (or strict mode is off)."""

    GENERAL_ERROR = 1
    """General error, or a failed report in strict mode."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, missing required options)."""

    FILE_NOT_FOUND = 3
    """Required file not found."""

    PERMISSION_ERROR = 4
    """Permission denied accessing file or resource."""

    VALIDATION_ERROR = 5
    """Input (policy, snapshot, image reference) validation failed."""

    EVALUATION_ERROR = 7
    """Rule evaluation could not run."""

    NETWORK_ERROR = 8
    """Registry or signing tool error."""

    CANCELLED = 130
    """Interrupted by the user."""


def exit_code_for(exc: BaseException) -> ExitCode:
    """Map an exception to its CLI exit code.

    Example:
        >>> from image_contract.errors import SnapshotInputError
        >>> exit_code_for(SnapshotInputError("bad"))
        <ExitCode.VALIDATION_ERROR: 5>
    """
    if isinstance(exc, ImageContractError):
        try:
            return ExitCode(exc.exit_code)
        except ValueError:
            return ExitCode.GENERAL_ERROR
    if isinstance(exc, PermissionError):
        return ExitCode.PERMISSION_ERROR
    if isinstance(exc, FileNotFoundError):
        return ExitCode.FILE_NOT_FOUND
    return ExitCode.GENERAL_ERROR


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("File not found", path="/path/to/file")
        # Output: Error: File not found (path=/path/to/file)
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


__all__ = [
    "ExitCode",
    "error",
    "error_exit",
    "exit_code_for",
]
