"""Application snapshot report and its output formats.

Formats:
    json       full report
    yaml       full report as YAML
    summary    per component, messages grouped by rule code with totals
    appstudio  CI test output summary (alias: hacbs)

Targets passed to ``Report.write_all`` are ``<format>`` (written to the
default stream) or ``<format>=<path>``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field

from image_contract.errors import ImageContractError
from image_contract.schemas.attestation import SignatureInfo
from image_contract.schemas.results import CODE_KEY, Result
from image_contract.timestamps import format_rfc3339

logger = structlog.get_logger(__name__)

JSON = "json"
YAML = "yaml"
SUMMARY = "summary"
APPSTUDIO = "appstudio"
HACBS = "hacbs"

FORMATS = (JSON, YAML, SUMMARY, APPSTUDIO, HACBS)


class Component(BaseModel):
    """Validation outcome of one snapshot component."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = ""
    container_image: str = ""
    violations: list[Result] = Field(default_factory=list)
    warnings: list[Result] = Field(default_factory=list)
    success_count: int = 0
    success: bool = False
    signatures: list[SignatureInfo] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "containerImage": self.container_image}
        if self.violations:
            data["violations"] = [r.to_wire() for r in self.violations]
        if self.warnings:
            data["warnings"] = [r.to_wire() for r in self.warnings]
        if self.success_count:
            data["successCount"] = self.success_count
        data["success"] = self.success
        if self.signatures:
            data["signatures"] = [s.to_wire() for s in self.signatures]
        return data


def _group_by_code(results: list[Result]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for result in results:
        code = result.metadata.get(CODE_KEY)
        if not isinstance(code, str) or not code:
            continue
        grouped.setdefault(code, []).append(result.message)

    condensed: dict[str, list[str]] = {}
    for code, messages in grouped.items():
        condensed[code] = messages[:1]
        if len(messages) > 1:
            condensed[code].append(f'There are {len(messages) - 1} more "{code}" messages')
    return condensed


class Report:
    """Report over all validated components.

    Args:
        components: Component outcomes, in snapshot order.
        public_key: Public key used for verification.
        created: Report timestamp (default: now).

    Attributes:
        success: True when every component succeeded.
    """

    def __init__(
        self,
        components: list[Component],
        public_key: str,
        created: datetime | None = None,
    ) -> None:
        self.components = components
        self.public_key = public_key
        self.created = created or datetime.now(timezone.utc)
        self.success = all(component.success for component in components)

    def to_dict(self) -> dict[str, Any]:
        """Full report document."""
        return {
            "success": self.success,
            "key": self.public_key,
            "components": [component.to_wire() for component in self.components],
            "policy": {"publicKey": self.public_key},
        }

    def to_summary(self) -> dict[str, Any]:
        """Condensed report, messages grouped by rule code."""
        return {
            "success": self.success,
            "key": self.public_key,
            "components": [
                {
                    "name": component.name,
                    "success": component.success,
                    "violations": _group_by_code(component.violations),
                    "warnings": _group_by_code(component.warnings),
                    "totalViolations": len(component.violations),
                    "totalWarnings": len(component.warnings),
                    "totalSuccesses": component.success_count,
                }
                for component in self.components
            ],
        }

    def to_appstudio(self) -> dict[str, Any]:
        """CI test output: components counted under every outcome they have."""
        failures = warnings = successes = 0
        for component in self.components:
            if component.violations:
                failures += 1
            if component.warnings:
                warnings += 1
            if component.success:
                successes += 1

        if not self.success:
            result = "FAILURE"
        elif warnings:
            result = "WARNING"
        elif successes == 0:
            result = "SKIPPED"
        else:
            result = "SUCCESS"

        return {
            "result": result,
            "timestamp": format_rfc3339(self.created),
            "namespace": "",
            "successes": successes,
            "failures": failures,
            "warnings": warnings,
        }

    def render(self, fmt: str) -> str:
        """Render the report in one format.

        Raises:
            ImageContractError: If the format is unknown.
        """
        if fmt == JSON:
            return json.dumps(self.to_dict())
        if fmt == YAML:
            return yaml.safe_dump(self.to_dict(), sort_keys=False)
        if fmt == SUMMARY:
            return json.dumps(self.to_summary())
        if fmt in (APPSTUDIO, HACBS):
            return json.dumps(self.to_appstudio())
        raise ImageContractError(f"unexpected report format: {fmt} (expected one of {', '.join(FORMATS)})")

    def write_all(self, targets: list[str], default_stream: IO[str]) -> None:
        """Write the report to every ``format[=path]`` target.

        Without targets the JSON report is written to ``default_stream``.
        """
        for target in targets or [JSON]:
            fmt, _, path = target.partition("=")
            content = self.render(fmt.strip())
            if path:
                Path(path).write_text(content + "\n", encoding="utf-8")
                logger.debug("report_written", format=fmt, path=path)
            else:
                default_stream.write(content + "\n")


__all__ = [
    "APPSTUDIO",
    "Component",
    "FORMATS",
    "HACBS",
    "JSON",
    "Report",
    "SUMMARY",
    "YAML",
]
