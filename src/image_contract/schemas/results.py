"""Rule evaluation result models.

These models mirror the JSON emitted by the rule engine (conftest):

    [
      {
        "filename": "input.json",
        "namespace": "release.main",
        "successes": 12,
        "warnings": [{"msg": "...", "metadata": {"code": "pkg.rule"}}],
        "failures": [...]
      }
    ]

``Result.metadata`` is loosely typed on the wire. RuleMetadata is the single
place where the recognized keys (``code``, ``term``, ``collections``,
``effective_on``) are type-checked; a recognized key holding the wrong type is
treated as absent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)

CODE_KEY = "code"
TERM_KEY = "term"
COLLECTIONS_KEY = "collections"
EFFECTIVE_ON_KEY = "effective_on"


class Result(BaseModel):
    """A single rule outcome: a message plus free-form metadata.

    Attributes:
        message: Human-readable description (``msg`` on the wire).
        metadata: Rule metadata; see RuleMetadata for the recognized keys.

    Example:
        >>> r = Result.model_validate({"msg": "boom", "metadata": {"code": "release.test"}})
        >>> r.message
        'boom'
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    message: str = Field(..., alias="msg", description="Human-readable message")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Rule metadata (code, term, collections, effective_on, ...)",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire names, omitting empty metadata."""
        data: dict[str, Any] = {"msg": self.message}
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


class CheckResult(BaseModel):
    """Results of evaluating one input document in one namespace.

    Attributes:
        filename: Evaluated input file.
        namespace: Rule namespace that produced the results.
        successes: Number of passing rules (successes are counted, not listed).
        skipped: Rules the engine skipped.
        warnings: Warning results.
        failures: Failure results.
        exceptions: Results the engine reported as excepted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    filename: str = Field(default="", description="Evaluated input file")
    namespace: str = Field(default="", description="Rule namespace")
    successes: int = Field(default=0, ge=0, description="Count of passing rules")
    skipped: list[Result] = Field(default_factory=list)
    warnings: list[Result] = Field(default_factory=list)
    failures: list[Result] = Field(default_factory=list)
    exceptions: list[Result] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of successes, warnings and failures in this group."""
        return self.successes + len(self.warnings) + len(self.failures)

    def to_wire(self) -> dict[str, Any]:
        """Serialize like the rule engine does, omitting empty lists."""
        data: dict[str, Any] = {
            "filename": self.filename,
            "namespace": self.namespace,
            "successes": self.successes,
        }
        for key in ("skipped", "warnings", "failures", "exceptions"):
            results: list[Result] = getattr(self, key)
            if results:
                data[key] = [r.to_wire() for r in results]
        return data


@dataclass(frozen=True)
class RuleMetadata:
    """Typed view of the recognized keys in Result.metadata.

    Attributes:
        code: Dot-delimited rule identifier, e.g. ``release.test``.
        term: Optional term qualifying the rule.
        collections: Collections the rule declares membership of.
        effective_on: Raw ``effective_on`` string (parsed by the classifier).
    """

    code: str | None = None
    term: str | None = None
    collections: tuple[str, ...] = ()
    effective_on: str | None = None

    @classmethod
    def from_result(cls, result: Result) -> RuleMetadata:
        """Extract the recognized metadata keys from a result.

        Args:
            result: Raw rule result.

        Returns:
            RuleMetadata with wrongly-typed keys dropped.
        """
        metadata = result.metadata
        effective_on = metadata.get(EFFECTIVE_ON_KEY)
        if effective_on is not None and not isinstance(effective_on, str):
            logger.warning(
                "non_string_effective_on_ignored",
                value=repr(effective_on),
                message=result.message,
            )
            effective_on = None

        return cls(
            code=_string_value(metadata, CODE_KEY),
            term=_string_value(metadata, TERM_KEY),
            collections=_string_list(metadata, COLLECTIONS_KEY),
            effective_on=effective_on,
        )


def _string_value(metadata: dict[str, Any], key: str) -> str | None:
    value = metadata.get(key)
    if isinstance(value, str) and value:
        return value
    if value is not None and not isinstance(value, str):
        logger.debug("non_string_metadata_ignored", key=key, value=repr(value))
    return None


def _string_list(metadata: dict[str, Any], key: str) -> tuple[str, ...]:
    value = metadata.get(key)
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if isinstance(item, str))


__all__ = [
    "CODE_KEY",
    "COLLECTIONS_KEY",
    "CheckResult",
    "EFFECTIVE_ON_KEY",
    "Result",
    "RuleMetadata",
    "TERM_KEY",
]
