"""Per-image verification output.

An Output is assembled by the verification pipeline and never mutated after
it is returned. Stages that never ran (because an earlier hard gate
terminated the run) are ``None``.

Serialized form (``Output.to_wire``)::

    {
      "imageAccessibleCheck": {"passed": true},
      "imageSignatureCheck": {"passed": false, "result": {"msg": "..."}},
      "attestationSignatureCheck": {"passed": true},
      "attestationSyntaxCheck": {"passed": true},
      "policyCheck": [{"filename": "...", "namespace": "...", ...}],
      "signatures": [{"keyid": "...", "sig": "..."}]
    }
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from image_contract.schemas.attestation import SignatureInfo
from image_contract.schemas.results import CheckResult, Result


class VerificationStatus(BaseModel):
    """Outcome of one pipeline stage.

    Attributes:
        passed: Whether the stage passed.
        result: Explanation, present for failures.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    passed: bool
    result: Result | None = None

    @classmethod
    def success(cls) -> VerificationStatus:
        """A passing status."""
        return cls(passed=True)

    @classmethod
    def failure(cls, message: str) -> VerificationStatus:
        """A failing status with the given message."""
        return cls(passed=False, result=Result(msg=message))

    @classmethod
    def from_error(cls, prefix: str, error: BaseException | str | None) -> VerificationStatus:
        """Passing status when ``error`` is None, failing status otherwise.

        Example:
            >>> VerificationStatus.from_error("Image signature check failed", "no signatures").result.message
            'Image signature check failed: no signatures'
        """
        if error is None:
            return cls.success()
        return cls.failure(f"{prefix}: {error}")

    def to_wire(self) -> dict[str, Any]:
        """Serialize, omitting an absent result."""
        data: dict[str, Any] = {"passed": self.passed}
        if self.result is not None:
            data["result"] = self.result.to_wire()
        return data


class Output(BaseModel):
    """Report of one image verification.

    Attributes:
        image_url: Resolved image reference (digest-pinned once resolved).
        image_accessible_check: Registry accessibility stage.
        image_signature_check: Image signature stage.
        attestation_signature_check: Attestation signature stage.
        attestation_syntax_check: Attestation syntax stage.
        policy_check: Classified rule results, one entry per evaluation group.
        signatures: Signature metadata of the verified image.
        effective_time: Instant used for temporal gating, when policy ran.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    image_url: str = ""
    image_accessible_check: VerificationStatus | None = None
    image_signature_check: VerificationStatus | None = None
    attestation_signature_check: VerificationStatus | None = None
    attestation_syntax_check: VerificationStatus | None = None
    policy_check: list[CheckResult] = Field(default_factory=list)
    signatures: list[SignatureInfo] = Field(default_factory=list)
    effective_time: datetime | None = None

    def _stage_statuses(self) -> list[VerificationStatus | None]:
        return [
            self.image_accessible_check,
            self.image_signature_check,
            self.attestation_signature_check,
            self.attestation_syntax_check,
        ]

    def violations(self) -> list[Result]:
        """Failed stage results followed by policy failures, in order."""
        violations: list[Result] = [
            status.result
            for status in self._stage_statuses()
            if status is not None and not status.passed and status.result is not None
        ]
        for check_result in self.policy_check:
            violations.extend(check_result.failures)
        return violations

    def warnings(self) -> list[Result]:
        """Policy warnings, in group order."""
        warnings: list[Result] = []
        for check_result in self.policy_check:
            warnings.extend(check_result.warnings)
        return warnings

    def success_count(self) -> int:
        """Number of passing policy rules."""
        return sum(check_result.successes for check_result in self.policy_check)

    @property
    def passed(self) -> bool:
        """True when there are no violations and no stage failed."""
        if any(status is not None and not status.passed for status in self._stage_statuses()):
            return False
        return not self.violations()

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the camelCase report keys."""
        data: dict[str, Any] = {}
        if self.image_url:
            data["imageUrl"] = self.image_url
        stages = {
            "imageAccessibleCheck": self.image_accessible_check,
            "imageSignatureCheck": self.image_signature_check,
            "attestationSignatureCheck": self.attestation_signature_check,
            "attestationSyntaxCheck": self.attestation_syntax_check,
        }
        for key, status in stages.items():
            if status is not None:
                data[key] = status.to_wire()
        data["policyCheck"] = [check_result.to_wire() for check_result in self.policy_check]
        if self.signatures:
            data["signatures"] = [signature.to_wire() for signature in self.signatures]
        if self.effective_time is not None:
            data["effectiveTime"] = self.effective_time.isoformat()
        return data


__all__ = ["Output", "VerificationStatus"]
