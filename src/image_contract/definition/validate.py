"""Validate a local definition document (e.g. a pipeline definition).

No signature or attestation stages apply: the file itself is the rule input,
and the raw results are reported as the policy check.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from image_contract.errors import DefinitionFileError
from image_contract.evaluator.conftest_evaluator import conftest_evaluators
from image_contract.output import Output

if TYPE_CHECKING:
    from image_contract.evaluator.base import Evaluator
    from image_contract.policy.context import PolicyContext
    from image_contract.schemas.results import CheckResult

logger = structlog.get_logger(__name__)


def validate_definition(
    path: str | Path,
    evaluator: Evaluator | None,
    policy: PolicyContext,
    cancel: threading.Event | None = None,
) -> Output:
    """Evaluate a definition file against the policy rules.

    Args:
        path: Definition file to evaluate.
        evaluator: Evaluator to use. When None, one conftest evaluator per
            policy source is created.
        policy: Policy context of the run.
        cancel: Optional cancellation signal.

    Returns:
        Output carrying only the policy check.

    Raises:
        DefinitionFileError: If the file does not exist.
        EvaluatorError: If evaluation cannot run.
    """
    definition = Path(path)
    if not definition.is_file():
        raise DefinitionFileError(str(definition))

    evaluators = [evaluator] if evaluator is not None else conftest_evaluators(policy)

    results: list[CheckResult] = []
    with ExitStack() as stack:
        for each in evaluators:
            stack.callback(each.release)
        for each in evaluators:
            results.extend(each.evaluate([definition], cancel))

    logger.debug("definition_evaluated", path=str(definition), groups=len(results))
    return Output(policy_check=results, effective_time=policy.effective_time)


__all__ = ["validate_definition"]
