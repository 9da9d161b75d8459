"""Unit tests for the per-image Output model."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from image_contract.output import Output, VerificationStatus
from image_contract.schemas.attestation import SignatureInfo
from image_contract.schemas.results import CheckResult, Result

MakeResult = Callable[..., Result]


class TestVerificationStatus:
    """Tests for stage statuses."""

    def test_from_error_none(self) -> None:
        """No error means the stage passed."""
        assert VerificationStatus.from_error("Image signature check failed", None).passed

    def test_from_error_message(self) -> None:
        """The error is prefixed into the failure message."""
        status = VerificationStatus.from_error("Image signature check failed", "no signatures")

        assert status.passed is False
        assert status.result is not None
        assert status.result.message == "Image signature check failed: no signatures"

    def test_to_wire(self) -> None:
        """A passing status serializes without a result."""
        assert VerificationStatus.success().to_wire() == {"passed": True}
        assert VerificationStatus.failure("boom").to_wire() == {
            "passed": False,
            "result": {"msg": "boom"},
        }


class TestOutput:
    """Tests for Output aggregation and serialization."""

    def test_violations_order(self, make_result: MakeResult) -> None:
        """Stage failures come first, then policy failures in group order."""
        output = Output(
            image_accessible_check=VerificationStatus.success(),
            image_signature_check=VerificationStatus.failure("bad signature"),
            policy_check=[
                CheckResult(failures=[make_result("f1")]),
                CheckResult(failures=[make_result("f2")], warnings=[make_result("w1")]),
            ],
        )

        assert [r.message for r in output.violations()] == ["bad signature", "f1", "f2"]
        assert [r.message for r in output.warnings()] == ["w1"]
        assert output.passed is False

    def test_passed(self) -> None:
        """Passing stages and no failures mean the image passed."""
        output = Output(
            image_accessible_check=VerificationStatus.success(),
            policy_check=[CheckResult(successes=2), CheckResult(successes=3)],
        )

        assert output.passed is True
        assert output.success_count() == 5

    def test_failed_stage_without_result(self) -> None:
        """A failed stage fails the output even without a message."""
        output = Output(image_signature_check=VerificationStatus(passed=False))

        assert output.passed is False

    def test_to_wire_omits_stages_not_run(self) -> None:
        """Stages that never ran are absent from the serialized form."""
        output = Output(
            image_url="quay.io/org/app:v1",
            image_accessible_check=VerificationStatus.failure("Image URL is not accessible"),
        )

        assert output.to_wire() == {
            "imageUrl": "quay.io/org/app:v1",
            "imageAccessibleCheck": {
                "passed": False,
                "result": {"msg": "Image URL is not accessible"},
            },
            "policyCheck": [],
        }

    def test_to_wire_full(self) -> None:
        """Signatures and effective time are serialized when present."""
        output = Output(
            signatures=[SignatureInfo(keyid="k", sig="s")],
            effective_time=datetime(2022, 1, 1, tzinfo=timezone.utc),
        )

        wire = output.to_wire()

        assert wire["signatures"] == [{"keyid": "k", "sig": "s"}]
        assert wire["effectiveTime"] == "2022-01-01T00:00:00+00:00"

    def test_frozen(self) -> None:
        """Outputs are immutable."""
        output = Output()

        with pytest.raises(ValidationError):
            output.image_url = "changed"  # type: ignore[misc]
