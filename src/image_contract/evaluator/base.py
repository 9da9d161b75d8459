"""Rule evaluation collaborator contracts."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from image_contract.schemas.results import CheckResult


@runtime_checkable
class Evaluator(Protocol):
    """Runs policy rules against prepared input files.

    Producing failure results is a normal outcome. Implementations raise
    EvaluatorError (or OperationCancelledError) only when evaluation itself
    could not run.
    """

    def evaluate(
        self,
        inputs: list[Path],
        cancel: threading.Event | None = None,
    ) -> list[CheckResult]:
        """Evaluate the rules against the inputs and return raw results."""
        ...

    def release(self) -> None:
        """Release resources (work directories) held by the evaluator."""
        ...


@runtime_checkable
class TestRunner(Protocol):
    """Executes the rule engine over prepared policy and data directories."""

    __test__ = False

    def run(
        self,
        inputs: list[Path],
        cancel: threading.Event | None = None,
    ) -> list[CheckResult]:
        """Run the engine and return raw results."""
        ...


__all__ = ["Evaluator", "TestRunner"]
