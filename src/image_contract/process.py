"""Subprocess execution honoring a cancellation signal.

The external tools (cosign, conftest) are run through ``run_command`` so that
a caller-supplied ``threading.Event`` can abort them. No timeout is applied;
the calling context owns timeouts.
"""

from __future__ import annotations

import shutil
import subprocess
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog

from image_contract.errors import OperationCancelledError

logger = structlog.get_logger(__name__)

POLL_INTERVAL_SECONDS = 0.2


def tool_available(binary: str) -> bool:
    """Check if a CLI tool is available on PATH (or as a path)."""
    return shutil.which(binary) is not None


def run_command(
    cmd: Sequence[str],
    *,
    operation: str,
    cancel: threading.Event | None = None,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command to completion, killing it if ``cancel`` is set.

    Args:
        cmd: Command and arguments.
        operation: Operation name used in logs and cancellation errors.
        cancel: Optional cancellation signal.
        cwd: Working directory.
        env: Environment for the child process.

    Returns:
        CompletedProcess with text stdout/stderr. A non-zero return code is
        not an error here; callers interpret it.

    Raises:
        OperationCancelledError: If ``cancel`` was set before or during the run.
        FileNotFoundError: If the binary does not exist.
    """
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError(operation)

    logger.debug("command_started", operation=operation, binary=cmd[0], args=len(cmd) - 1)
    process = subprocess.Popen(  # noqa: S603
        list(cmd),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        cwd=cwd,
        env=dict(env) if env is not None else None,
    )

    while True:
        try:
            stdout, stderr = process.communicate(timeout=POLL_INTERVAL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.is_set():
                process.kill()
                process.communicate()
                logger.info("command_cancelled", operation=operation)
                raise OperationCancelledError(operation) from None

    logger.debug("command_finished", operation=operation, returncode=process.returncode)
    return subprocess.CompletedProcess(list(cmd), process.returncode, stdout, stderr)


__all__ = ["POLL_INTERVAL_SECONDS", "run_command", "tool_available"]
