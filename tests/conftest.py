"""Shared fixtures for image-contract tests.

Unit tests never run cosign, conftest or a registry. The verification
pipeline is driven through in-memory collaborators:

- ``fake_verifier``: a SigningVerifier whose outcome per stage is set by
  attribute assignment.
- ``fake_evaluator_factory``: builds evaluators returning canned results and
  records every evaluator it created.
- ``slsa_record``: builds signed-attestation records for a digest.
"""

from __future__ import annotations

import base64
import json
import threading
from collections.abc import Callable, Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

from image_contract.image.collaborators import AttestationCheckFailed, SignatureCheckFailed
from image_contract.image.reference import ImageReference
from image_contract.policy.context import PolicyContext
from image_contract.schemas.attestation import (
    IN_TOTO_STATEMENT_V01,
    SLSA_PROVENANCE_V02,
    AttestationRecord,
    SignatureInfo,
)
from image_contract.schemas.policy import PolicySpec
from image_contract.schemas.results import CheckResult, Result

IMAGE_DIGEST = "sha256:" + "a" * 64
OTHER_DIGEST = "sha256:" + "b" * 64
PUBLIC_KEY = "k8s://tekton-chains/signing-secrets"


class FakeVerifier:
    """SigningVerifier double.

    Attributes:
        accessible: Result of probe_accessible.
        digest: Digest returned by resolve_digest.
        signature_error: Message for SignatureCheckFailed, or None to pass.
        attestation_error: Message for AttestationCheckFailed, or None.
        attestations: Records returned by verify_attestation_signatures.
        calls: (method, str(ref), cancel) tuples in call order.
    """

    def __init__(self) -> None:
        self.accessible = True
        self.digest = IMAGE_DIGEST
        self.signature_error: str | None = None
        self.attestation_error: str | None = None
        self.signatures = [SignatureInfo(keyid="key-1", sig="c2lnbmF0dXJl")]
        self.attestations: list[AttestationRecord] = []
        self.calls: list[tuple[str, str, threading.Event | None]] = []
        self._lock = threading.Lock()

    def _record(self, method: str, ref: ImageReference, cancel: threading.Event | None) -> None:
        with self._lock:
            self.calls.append((method, str(ref), cancel))

    def probe_accessible(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> bool:
        self._record("probe_accessible", ref, cancel)
        return self.accessible

    def resolve_digest(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> str:
        self._record("resolve_digest", ref, cancel)
        return self.digest

    def verify_image_signature(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[SignatureInfo]:
        self._record("verify_image_signature", ref, cancel)
        if self.signature_error is not None:
            raise SignatureCheckFailed(self.signature_error)
        return list(self.signatures)

    def verify_attestation_signatures(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[AttestationRecord]:
        self._record("verify_attestation_signatures", ref, cancel)
        if self.attestation_error is not None:
            raise AttestationCheckFailed(self.attestation_error)
        return list(self.attestations)

    def methods(self) -> list[str]:
        """Names of the methods called, in order."""
        return [call[0] for call in self.calls]


class FakeEvaluator:
    """Evaluator double returning canned results."""

    def __init__(
        self,
        results: list[CheckResult],
        error: Exception | None = None,
    ) -> None:
        self.results = results
        self.error = error
        self.inputs: list[list[Path]] = []
        self.input_documents: list[Any] = []
        self.cancels: list[threading.Event | None] = []
        self.released = False

    def evaluate(
        self,
        inputs: list[Path],
        cancel: threading.Event | None = None,
    ) -> list[CheckResult]:
        self.inputs.append(list(inputs))
        self.cancels.append(cancel)
        for path in inputs:
            self.input_documents.append(json.loads(path.read_text(encoding="utf-8")))
        if self.error is not None:
            raise self.error
        return list(self.results)

    def release(self) -> None:
        self.released = True


class FakeEvaluatorFactory:
    """Evaluator factory double.

    Attributes:
        results: One result list per evaluator to create.
        errors: Optional exception per evaluator (same index as results).
        created: Evaluators created so far.
        policies: PolicyContexts the factory was called with.
    """

    def __init__(self) -> None:
        self.results: list[list[CheckResult]] = [[CheckResult(successes=1)]]
        self.errors: list[Exception | None] = []
        self.created: list[FakeEvaluator] = []
        self.policies: list[PolicyContext] = []

    def __call__(self, policy: PolicyContext) -> list[FakeEvaluator]:
        self.policies.append(policy)
        evaluators = []
        for index, results in enumerate(self.results):
            error = self.errors[index] if index < len(self.errors) else None
            evaluators.append(FakeEvaluator(results, error))
        self.created.extend(evaluators)
        return evaluators


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo logging configuration made by a test (e.g. through the CLI)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    """A verifier for an accessible, signed image with no attestations."""
    return FakeVerifier()


@pytest.fixture
def fake_evaluator_factory() -> FakeEvaluatorFactory:
    """An evaluator factory producing one evaluator with a single success."""
    return FakeEvaluatorFactory()


@pytest.fixture
def make_result() -> Callable[..., Result]:
    """Factory for rule results: ``make_result("msg", code="pkg.rule")``."""

    def _make(message: str = "rule failed", **metadata: Any) -> Result:
        return Result(msg=message, metadata=metadata)

    return _make


@pytest.fixture
def make_policy() -> Callable[..., PolicyContext]:
    """Factory for PolicyContexts from wire-format policy fields.

    Usage:
        ctx = make_policy(configuration={"include": ["release"]})
        pinned = make_policy(effective_time=datetime(2022, 1, 1, tzinfo=timezone.utc))
    """

    def _make(effective_time: datetime | None = None, **fields: Any) -> PolicyContext:
        fields.setdefault("publicKey", PUBLIC_KEY)
        return PolicyContext(PolicySpec.model_validate(fields), effective_time)

    return _make


@pytest.fixture
def make_statement() -> Callable[..., dict[str, Any]]:
    """Factory for SLSA v0.2 provenance statements."""

    def _make(
        digest: str = IMAGE_DIGEST,
        finished_on: str | None = "2022-06-01T10:00:00Z",
        predicate_type: str = SLSA_PROVENANCE_V02,
    ) -> dict[str, Any]:
        algorithm, value = digest.split(":", 1)
        predicate: dict[str, Any] = {"buildType": "https://tekton.dev/attestations/chains@v2"}
        if finished_on is not None:
            predicate["metadata"] = {"buildFinishedOn": finished_on}
        return {
            "_type": IN_TOTO_STATEMENT_V01,
            "predicateType": predicate_type,
            "subject": [{"name": "quay.io/org/app", "digest": {algorithm: value}}],
            "predicate": predicate,
        }

    return _make


@pytest.fixture
def slsa_record(
    make_statement: Callable[..., dict[str, Any]],
) -> Callable[..., AttestationRecord]:
    """Factory for verified SLSA provenance attestation records."""

    def _make(**kwargs: Any) -> AttestationRecord:
        return AttestationRecord(statement=make_statement(**kwargs))

    return _make


@pytest.fixture
def make_envelope() -> Callable[[dict[str, Any]], str]:
    """Encode a statement as a DSSE envelope line, as printed by cosign."""

    def _make(statement: dict[str, Any]) -> str:
        payload = base64.b64encode(json.dumps(statement).encode("utf-8")).decode("ascii")
        return json.dumps(
            {
                "payloadType": "application/vnd.in-toto+json",
                "payload": payload,
                "signatures": [{"keyid": "", "sig": "c2ln"}],
            }
        )

    return _make
