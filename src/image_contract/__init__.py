"""image-contract: container image signature, attestation and policy verification.

This package provides:
- ImageValidator: the per-image verification pipeline
- PolicyContext, load_policy: policy configuration and effective time
- ResultClassifier: include/exclude/effective-date classification of rule results
- Output, VerificationStatus: per-image verification report
- validate_snapshot, Report: multi-component validation and report formats
- Errors: exception hierarchy rooted at ImageContractError

Example:
    >>> from image_contract import ImageValidator, CosignVerifier, load_policy
    >>> policy = load_policy("policy.yaml", public_key="cosign.pub")
    >>> output = ImageValidator(CosignVerifier()).validate("quay.io/org/app:v1", policy)
    >>> output.passed
    True

See Also:
    - image_contract.image: verification pipeline and collaborators
    - image_contract.evaluator: rule evaluation and classification
    - image_contract.snapshot: application snapshot input and report
    - image_contract.cli: command-line interface
"""

from __future__ import annotations

__version__ = "0.1.0"

from image_contract.errors import (
    ComponentValidationError,
    EvaluatorError,
    ImageContractError,
    ImageReferenceError,
    NoResultsError,
    PolicyConfigurationError,
    RegistryUnavailableError,
)
from image_contract.evaluator import ResultClassifier
from image_contract.image import CosignVerifier, ImageValidator, validate_image
from image_contract.output import Output, VerificationStatus
from image_contract.policy import PolicyContext, load_policy
from image_contract.snapshot import Report, validate_snapshot

__all__ = [
    "ComponentValidationError",
    "CosignVerifier",
    "EvaluatorError",
    "ImageContractError",
    "ImageReferenceError",
    "ImageValidator",
    "NoResultsError",
    "Output",
    "PolicyConfigurationError",
    "PolicyContext",
    "RegistryUnavailableError",
    "Report",
    "ResultClassifier",
    "VerificationStatus",
    "__version__",
    "load_policy",
    "validate_image",
    "validate_snapshot",
]
