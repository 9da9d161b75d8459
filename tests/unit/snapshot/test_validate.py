"""Unit tests for snapshot validation."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

import pytest

from image_contract.errors import ComponentValidationError
from image_contract.image.validate import ImageValidator
from image_contract.output import Output, VerificationStatus
from image_contract.policy.context import PolicyContext
from image_contract.schemas.attestation import AttestationRecord
from image_contract.schemas.results import CheckResult, Result
from image_contract.snapshot.input import SnapshotComponent, SnapshotSpec
from image_contract.snapshot.validate import component_from_output, validate_snapshot

MakePolicy = Callable[..., PolicyContext]


class RecordingValidator:
    """Validator double returning canned outputs per image."""

    def __init__(self, outputs: dict[str, Output | Exception], delays: dict[str, float] | None = None) -> None:
        self.outputs = outputs
        self.delays = delays or {}
        self.policies: list[PolicyContext] = []
        self.cancels: list[threading.Event | None] = []
        self._lock = threading.Lock()

    def validate(
        self, image_url: str, policy: PolicyContext, cancel: threading.Event | None = None
    ) -> Output:
        with self._lock:
            self.policies.append(policy)
            self.cancels.append(cancel)
        time.sleep(self.delays.get(image_url, 0))
        outcome = self.outputs[image_url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _spec(*images: str) -> SnapshotSpec:
    return SnapshotSpec(
        components=[
            SnapshotComponent(name=f"c{i}", container_image=image) for i, image in enumerate(images)
        ]
    )


class TestComponentFromOutput:
    """Tests for summarizing an Output."""

    def test_passing(self) -> None:
        """Resolved image URL and success count are carried over."""
        output = Output(image_url="quay.io/o/a@sha256:1", policy_check=[CheckResult(successes=4)])

        component = component_from_output(SnapshotComponent(name="a", container_image="quay.io/o/a:1"), output)

        assert component.container_image == "quay.io/o/a@sha256:1"
        assert component.success is True
        assert component.success_count == 4

    def test_failing(self) -> None:
        """Stage failures are violations."""
        output = Output(image_accessible_check=VerificationStatus.failure("not accessible"))

        component = component_from_output(SnapshotComponent(name="a", container_image="quay.io/o/a:1"), output)

        assert component.container_image == "quay.io/o/a:1"
        assert component.success is False
        assert [r.message for r in component.violations] == ["not accessible"]


class TestValidateSnapshot:
    """Tests for validate_snapshot."""

    def test_order_preserved(self, make_policy: MakePolicy) -> None:
        """Components come back in snapshot order regardless of completion order."""
        validator = RecordingValidator(
            {
                "quay.io/o/slow:1": Output(image_url="slow"),
                "quay.io/o/fast:1": Output(image_url="fast"),
            },
            delays={"quay.io/o/slow:1": 0.05},
        )

        components = validate_snapshot(
            _spec("quay.io/o/slow:1", "quay.io/o/fast:1"), make_policy(), validator  # type: ignore[arg-type]
        )

        assert [c.container_image for c in components] == ["slow", "fast"]

    def test_fresh_policy_per_component(self, make_policy: MakePolicy) -> None:
        """Every component gets its own PolicyContext."""
        policy = make_policy()
        validator = RecordingValidator({"quay.io/o/a:1": Output(), "quay.io/o/b:1": Output()})

        validate_snapshot(_spec("quay.io/o/a:1", "quay.io/o/b:1"), policy, validator)  # type: ignore[arg-type]

        assert len(validator.policies) == 2
        assert validator.policies[0] is not validator.policies[1]
        assert all(p is not policy for p in validator.policies)

    def test_cancel_forwarded(self, make_policy: MakePolicy) -> None:
        """The cancel event reaches every validation."""
        cancel = threading.Event()
        validator = RecordingValidator({"quay.io/o/a:1": Output()})

        validate_snapshot(_spec("quay.io/o/a:1"), make_policy(), validator, cancel=cancel)  # type: ignore[arg-type]

        assert validator.cancels == [cancel]

    def test_errors_aggregated(self, make_policy: MakePolicy) -> None:
        """Pipeline errors of all components are reported together."""
        validator = RecordingValidator(
            {
                "quay.io/o/a:1": RuntimeError("registry down"),
                "quay.io/o/b:1": Output(),
                "quay.io/o/c:1": RuntimeError("conftest broke"),
            }
        )

        with pytest.raises(ComponentValidationError) as exc_info:
            validate_snapshot(
                _spec("quay.io/o/a:1", "quay.io/o/b:1", "quay.io/o/c:1"), make_policy(), validator  # type: ignore[arg-type]
            )

        message = str(exc_info.value)
        assert message.splitlines()[0] == "2 errors occurred:"
        assert "error validating image quay.io/o/a:1 of component c0: registry down" in message
        assert "error validating image quay.io/o/c:1 of component c2: conftest broke" in message

    def test_empty_snapshot(self, make_policy: MakePolicy) -> None:
        """No components, no work."""
        assert validate_snapshot(SnapshotSpec(), make_policy(), RecordingValidator({})) == []  # type: ignore[arg-type]

    def test_with_pipeline(
        self,
        make_policy: MakePolicy,
        fake_verifier,
        fake_evaluator_factory,
        slsa_record: Callable[..., AttestationRecord],
    ) -> None:
        """Components validated through the real pipeline report rule results."""
        fake_verifier.attestations = [slsa_record()]
        fake_evaluator_factory.results = [
            [CheckResult(successes=2, failures=[Result(msg="bad", metadata={"code": "pkg.rule"})])]
        ]
        validator = ImageValidator(fake_verifier, evaluator_factory=fake_evaluator_factory)

        components = validate_snapshot(_spec("quay.io/org/app:v1"), make_policy(), validator)

        assert components[0].success is False
        assert components[0].success_count == 2
        assert [r.message for r in components[0].violations] == ["bad"]
        assert components[0].signatures == fake_verifier.signatures
