"""Rule evaluation and result classification.

Example:
    >>> from image_contract.evaluator import ResultClassifier
    >>> classified = ResultClassifier(policy).classify(raw_results)
"""

from __future__ import annotations

from image_contract.evaluator.base import Evaluator, TestRunner
from image_contract.evaluator.classifier import (
    ResultClassifier,
    extract_collections,
    is_result_effective,
    make_matchers,
)
from image_contract.evaluator.conftest_evaluator import (
    ConftestEvaluator,
    ConftestRunner,
    conftest_evaluators,
)

__all__ = [
    "ConftestEvaluator",
    "ConftestRunner",
    "Evaluator",
    "ResultClassifier",
    "TestRunner",
    "conftest_evaluators",
    "extract_collections",
    "is_result_effective",
    "make_matchers",
]
