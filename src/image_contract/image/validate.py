"""Verification pipeline for a single image.

Stages run in a fixed order:

1. accessibility (hard gate), then digest resolution with the tag dropped
2. image signature (soft gate)
3. attestation signatures (hard gate)
4. attestation syntax (soft gate, invalid statements are excluded)
5. subject filtering against the image digest
6. attestation build time applied to the PolicyContext
7. no matching attestation: a single synthesized failure, no evaluation
8. rule engine input written to a temporary directory
9. evaluation with every evaluator, each released unconditionally
10. classification of the raw results

Verification-domain failures are reported on the Output. Exceptions mean the
pipeline could not run (malformed reference, registry down, evaluator broke).
"""

from __future__ import annotations

import tempfile
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace

from image_contract.attestation.statements import (
    filter_matching_attestations,
    validate_attestation_syntax,
)
from image_contract.attestation.time_resolver import determine_attestation_time
from image_contract.evaluator.base import Evaluator
from image_contract.evaluator.classifier import ResultClassifier
from image_contract.evaluator.conftest_evaluator import conftest_evaluators
from image_contract.image.collaborators import AttestationCheckFailed, SignatureCheckFailed
from image_contract.image.input_file import JsonInputSerializer
from image_contract.image.reference import ImageReference
from image_contract.output import Output, VerificationStatus
from image_contract.policy.context import PolicyContext
from image_contract.schemas.results import CheckResult, Result
from image_contract.telemetry.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from image_contract.image.collaborators import InputSerializer, SigningVerifier
    from image_contract.schemas.attestation import SignatureInfo

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

EvaluatorFactory = Callable[[PolicyContext], Sequence[Evaluator]]

NOT_ACCESSIBLE = "Image URL is not accessible"
SIGNATURE_FAILED = "Image signature check failed"
ATTESTATION_FAILED = "Image attestation check failed"
SYNTAX_FAILED = "Attestation syntax check failed"
NO_MATCHING_ATTESTATIONS = "No attestations contain a subject that match the given image."


class ImageValidator:
    """Runs the verification pipeline against one image at a time.

    Args:
        verifier: Signing verification collaborator.
        evaluator_factory: Creates the evaluators for a run from its policy
            context. Defaults to one conftest evaluator per policy source.
        serializer: Input serializer. Defaults to JsonInputSerializer.
        max_workers: Evaluators run concurrently when greater than 1.

    Example:
        >>> validator = ImageValidator(CosignVerifier())
        >>> output = validator.validate("quay.io/org/app:v1", load_policy(policy_json))
        >>> output.passed
        True
    """

    def __init__(
        self,
        verifier: SigningVerifier,
        evaluator_factory: EvaluatorFactory | None = None,
        serializer: InputSerializer | None = None,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.verifier = verifier
        self.evaluator_factory: EvaluatorFactory = evaluator_factory or conftest_evaluators
        self.serializer: InputSerializer = serializer or JsonInputSerializer()
        self.max_workers = max_workers

    def validate(
        self,
        image_url: str,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> Output:
        """Verify one image against the policy.

        Args:
            image_url: Image reference to verify.
            policy: Policy context for this run (its effective time may be
                resolved from the attestations).
            cancel: Cancellation signal forwarded to every collaborator.

        Returns:
            Output describing every stage that ran.

        Raises:
            ImageReferenceError: If the reference is malformed.
            RegistryUnavailableError: If the registry cannot be reached.
            EvaluatorError: If rule evaluation cannot run or yields nothing.
            OperationCancelledError: If ``cancel`` is set during a call.
        """
        log = logger.bind(image=image_url)
        with tracer.start_as_current_span("image_contract.validate_image") as span:
            span.set_attribute("image_contract.image.url", image_url)
            try:
                output = self._run(image_url, policy, cancel, log)
            except Exception as e:
                sanitized = sanitize_error_message(str(e))
                span.set_attribute("exception.type", type(e).__name__)
                span.set_attribute("exception.message", sanitized)
                span.set_status(trace.Status(trace.StatusCode.ERROR, sanitized))
                raise
            span.set_attribute("image_contract.image.resolved", output.image_url)
            span.set_attribute("image_contract.passed", output.passed)
            log.info("image_validated", resolved=output.image_url, passed=output.passed)
            return output

    def _run(
        self,
        image_url: str,
        policy: PolicyContext,
        cancel: threading.Event | None,
        log: Any,
    ) -> Output:
        ref = ImageReference.parse(image_url)

        if not self.verifier.probe_accessible(ref, policy, cancel):
            log.debug("image_not_accessible")
            return Output(
                image_url=image_url,
                image_accessible_check=VerificationStatus.from_error(
                    NOT_ACCESSIBLE, f"no manifest found for {ref}"
                ),
            )
        accessible = VerificationStatus.success()

        digest = self.verifier.resolve_digest(ref, policy, cancel)
        resolved = ref.with_digest(digest)
        resolved_url = str(resolved)
        log.debug("image_resolved", resolved=resolved_url)

        signatures: list[SignatureInfo] = []
        try:
            signatures = self.verifier.verify_image_signature(resolved, policy, cancel)
            image_signature = VerificationStatus.success()
        except SignatureCheckFailed as e:
            log.debug("image_signature_failed", error=str(e))
            image_signature = VerificationStatus.from_error(SIGNATURE_FAILED, e)

        try:
            records = self.verifier.verify_attestation_signatures(resolved, policy, cancel)
        except AttestationCheckFailed as e:
            log.debug("attestation_signature_failed", error=str(e))
            return Output(
                image_url=resolved_url,
                image_accessible_check=accessible,
                image_signature_check=image_signature,
                attestation_signature_check=VerificationStatus.from_error(ATTESTATION_FAILED, e),
            )
        attestation_signature = VerificationStatus.success()

        valid, syntax_errors = validate_attestation_syntax(records)
        attestation_syntax = VerificationStatus.from_error(
            SYNTAX_FAILED, "; ".join(syntax_errors) if syntax_errors else None
        )

        matching = filter_matching_attestations(valid, digest)

        attestation_time = determine_attestation_time(matching)
        if attestation_time is not None:
            policy.set_attestation_time(attestation_time)

        stages = {
            "image_url": resolved_url,
            "image_accessible_check": accessible,
            "image_signature_check": image_signature,
            "attestation_signature_check": attestation_signature,
            "attestation_syntax_check": attestation_syntax,
            "signatures": signatures,
            "effective_time": policy.effective_time,
        }

        if not matching:
            log.debug("no_matching_attestations", total=len(records))
            return Output(
                **stages,
                policy_check=[CheckResult(failures=[Result(msg=NO_MATCHING_ATTESTATIONS)])],
            )

        with tempfile.TemporaryDirectory(prefix="image-contract-input-") as tmpdir:
            input_path = self.serializer.write_input(resolved_url, matching, Path(tmpdir))
            raw_results = self._evaluate(policy, [input_path], cancel)

        classified = ResultClassifier(policy).classify(raw_results)
        return Output(**stages, policy_check=classified)

    def _evaluate(
        self,
        policy: PolicyContext,
        inputs: list[Path],
        cancel: threading.Event | None,
    ) -> list[CheckResult]:
        results: list[CheckResult] = []
        with ExitStack() as stack:
            evaluators: list[Evaluator] = []
            for evaluator in self.evaluator_factory(policy):
                stack.callback(evaluator.release)
                evaluators.append(evaluator)

            if self.max_workers > 1 and len(evaluators) > 1:
                workers = min(self.max_workers, len(evaluators))
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    futures = [pool.submit(e.evaluate, inputs, cancel) for e in evaluators]
                    for future in futures:
                        results.extend(future.result())
            else:
                for evaluator in evaluators:
                    results.extend(evaluator.evaluate(inputs, cancel))

        logger.debug("evaluation_complete", evaluators=len(evaluators), groups=len(results))
        return results


def validate_image(
    image_url: str,
    policy: PolicyContext,
    *,
    verifier: SigningVerifier | None = None,
    evaluator_factory: EvaluatorFactory | None = None,
    serializer: InputSerializer | None = None,
    max_workers: int = 1,
    cancel: threading.Event | None = None,
) -> Output:
    """Verify one image with default collaborators where none are given.

    See ImageValidator.validate for arguments, return value and errors.
    """
    if verifier is None:
        from image_contract.image.cosign_verifier import CosignVerifier

        verifier = CosignVerifier()

    validator = ImageValidator(
        verifier,
        evaluator_factory=evaluator_factory,
        serializer=serializer,
        max_workers=max_workers,
    )
    return validator.validate(image_url, policy, cancel)


__all__ = [
    "ATTESTATION_FAILED",
    "EvaluatorFactory",
    "ImageValidator",
    "NOT_ACCESSIBLE",
    "NO_MATCHING_ATTESTATIONS",
    "SIGNATURE_FAILED",
    "SYNTAX_FAILED",
    "validate_image",
]
