"""Partition raw rule results into successes, warnings and failures.

Every warning and failure candidate is first matched against the policy's
include/exclude configuration:

    code "release.test", term "buildah" ->
        release, release.*, release.test,
        release:buildah, release.*:buildah, release.test:buildah,
        *

A result is kept when a declared collection or a matcher is included and no
matcher is excluded. Kept failures whose ``effective_on`` lies in the future
(relative to the policy effective time) become warnings. Successes are
counted and pass through untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from image_contract.errors import NoResultsError
from image_contract.schemas.results import CheckResult, RuleMetadata
from image_contract.timestamps import parse_effective_on

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from image_contract.policy.context import PolicyContext
    from image_contract.schemas.results import Result

logger = structlog.get_logger(__name__)

WILDCARD = "*"


def make_matchers(metadata: RuleMetadata) -> list[str]:
    """Return the matcher strings for a result, most specific package first.

    Args:
        metadata: Typed result metadata.

    Returns:
        Package matchers, their term-qualified variants, then ``*``.

    Example:
        >>> make_matchers(RuleMetadata(code="release.test"))
        ['release', 'release.*', 'release.test', '*']
    """
    parts = (metadata.code or "").split(".")
    package = parts[-2] if len(parts) >= 2 else ""
    rule = parts[-1]

    matchers: list[str] = []
    if package:
        matchers.extend([package, f"{package}.*", f"{package}.{rule}"])

    if metadata.term:
        matchers.extend([f"{m}:{metadata.term}" for m in matchers])

    matchers.append(WILDCARD)
    return matchers


def extract_collections(metadata: RuleMetadata) -> list[str]:
    """Return the collections a result declares membership of."""
    return list(metadata.collections)


def _has_any_match(needles: Iterable[str], haystack: Sequence[str]) -> bool:
    return any(needle in haystack for needle in needles)


def is_result_effective(result: Result, effective_time: datetime) -> bool:
    """Return whether a failure applies at the given effective time.

    A missing, wrongly-typed or unparseable ``effective_on`` means the
    result is effective immediately. A value strictly after the effective
    time means the rule only applies in the future.

    Args:
        result: Failure candidate.
        effective_time: Instant governing the run.

    Returns:
        True if the failure blocks, False if it should become a warning.
    """
    raw = RuleMetadata.from_result(result).effective_on
    if raw is None:
        return True
    try:
        effective_on = parse_effective_on(raw)
    except ValueError:
        logger.warning("invalid_effective_on_ignored", value=raw, message=result.message)
        return True
    return not effective_on > effective_time


class ResultClassifier:
    """Apply a PolicyContext to raw rule results.

    Args:
        policy: Policy context of the current run.

    Example:
        >>> classifier = ResultClassifier(policy)
        >>> classified = classifier.classify(raw_results)
    """

    def __init__(self, policy: PolicyContext) -> None:
        self._policy = policy
        self._log = logger.bind(component="ResultClassifier")

    @property
    def includes(self) -> tuple[str, ...]:
        """Effective include set (``*`` when nothing is configured)."""
        if not self._policy.include and not self._policy.collections:
            return (WILDCARD,)
        return self._policy.include

    @property
    def excludes(self) -> tuple[str, ...]:
        """Exclude matchers, with the non-blocking list folded in."""
        return self._policy.exclude + self._policy.non_blocking

    def is_result_included(self, result: Result) -> bool:
        """Return whether the policy keeps this result.

        Args:
            result: Warning or failure candidate.

        Returns:
            True if included and not excluded.
        """
        metadata = RuleMetadata.from_result(result)
        matchers = make_matchers(metadata)
        collections = extract_collections(metadata)

        is_included = _has_any_match(collections, self._policy.collections) or _has_any_match(
            matchers, self.includes
        )
        is_excluded = _has_any_match(matchers, self.excludes)
        return is_included and not is_excluded

    def classify_group(self, check_result: CheckResult) -> CheckResult:
        """Classify one evaluation group, preserving result order.

        Args:
            check_result: Raw results of one input/namespace.

        Returns:
            New CheckResult with filtered warnings and gated failures.
        """
        effective_time = self._policy.effective_time
        warnings: list[Result] = []
        failures: list[Result] = []

        for warning in check_result.warnings:
            if not self.is_result_included(warning):
                self._log.debug("result_skipped", kind="warning", message=warning.message)
                continue
            warnings.append(warning)

        for failure in check_result.failures:
            if not self.is_result_included(failure):
                self._log.debug("result_skipped", kind="failure", message=failure.message)
                continue
            if is_result_effective(failure, effective_time):
                failures.append(failure)
            else:
                self._log.debug("future_failure_demoted", message=failure.message)
                warnings.append(failure)

        return check_result.model_copy(update={"warnings": warnings, "failures": failures})

    def classify(self, check_results: Iterable[CheckResult]) -> list[CheckResult]:
        """Classify all evaluation groups of a run.

        Args:
            check_results: Raw results from every evaluator.

        Returns:
            Classified groups, in input order.

        Raises:
            NoResultsError: If there are no successes, warnings or failures at all.
        """
        classified = [self.classify_group(result) for result in check_results]

        total = sum(result.total for result in classified)
        if total == 0:
            self._log.error("no_results", groups=len(classified))
            raise NoResultsError()

        self._log.debug(
            "results_classified",
            groups=len(classified),
            successes=sum(r.successes for r in classified),
            warnings=sum(len(r.warnings) for r in classified),
            failures=sum(len(r.failures) for r in classified),
        )
        return classified


__all__ = [
    "ResultClassifier",
    "WILDCARD",
    "extract_collections",
    "is_result_effective",
    "make_matchers",
]
