"""Exception hierarchy for image-contract.

All exceptions raised by the verification core inherit from
ImageContractError. Verification-domain failures (an invalid signature, a
missing attestation, an unreachable image) are NOT exceptions: they are
recorded as VerificationStatus entries on the Output. The exceptions below
mean the pipeline could not run to completion.

Exception Hierarchy:
    ImageContractError (base)
    ├── PolicyConfigurationError   # Policy document malformed or incomplete
    ├── ImageReferenceError        # Image reference cannot be parsed
    ├── SnapshotInputError         # Snapshot document malformed
    ├── DefinitionFileError        # Definition file missing
    ├── RegistryUnavailableError   # Registry not reachable
    ├── CosignError                # cosign CLI missing or misbehaving
    ├── EvaluatorError             # Rule evaluation could not run
    │   └── NoResultsError         # Rule evaluation produced nothing
    ├── OperationCancelledError    # Caller cancelled an I/O-bound call
    └── MultipleErrors             # Several errors reported together
        ├── InvalidInputError      # Unusable snapshot and/or policy input
        └── ComponentValidationError  # One or more snapshot components failed

Exit Codes:
    0 - Success
    1 - General error (ImageContractError)
    3 - File not found (DefinitionFileError)
    5 - Invalid input (PolicyConfigurationError, ImageReferenceError,
        SnapshotInputError, InvalidInputError)
    7 - Evaluation error (EvaluatorError, NoResultsError)
    8 - Network/tooling error (RegistryUnavailableError, CosignError)
    130 - Cancelled (OperationCancelledError)

Example:
    >>> from image_contract.errors import ImageReferenceError
    >>> raise ImageReferenceError("registry/image:", "empty tag")
    Traceback (most recent call last):
        ...
    ImageReferenceError: Invalid image reference 'registry/image:': empty tag
"""

from __future__ import annotations


class ImageContractError(Exception):
    """Base exception for all image-contract errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1


class PolicyConfigurationError(ImageContractError):
    """Raised when the policy specification cannot be used.

    Covers malformed JSON/YAML, unsupported policy references and a missing
    public key.

    Example:
        >>> raise PolicyConfigurationError("policy must provide a public key")
        Traceback (most recent call last):
            ...
        PolicyConfigurationError: policy must provide a public key
    """

    exit_code: int = 5


class ImageReferenceError(ImageContractError):
    """Raised when an image reference cannot be parsed.

    Attributes:
        reference: The offending reference string.
        reason: Why it was rejected.
    """

    exit_code: int = 5

    def __init__(self, reference: str, reason: str) -> None:
        """Initialize ImageReferenceError.

        Args:
            reference: The offending reference string.
            reason: Why it was rejected.
        """
        self.reference = reference
        self.reason = reason
        super().__init__(f"Invalid image reference '{reference}': {reason}")


class SnapshotInputError(ImageContractError):
    """Raised when a snapshot specification cannot be parsed."""

    exit_code: int = 5


class DefinitionFileError(ImageContractError):
    """Raised when a definition file to validate does not exist."""

    exit_code: int = 3

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"definition file `{path}` does not exist")


class RegistryUnavailableError(ImageContractError):
    """Raised when the registry cannot be reached at all.

    An image that the registry reports as missing is not an error, it is an
    inaccessible image. This error means the question could not be asked.

    Attributes:
        registry: Registry host that could not be reached.
        reason: Underlying failure description.
    """

    exit_code: int = 8

    def __init__(self, registry: str, reason: str) -> None:
        """Initialize RegistryUnavailableError.

        Args:
            registry: Registry host that could not be reached.
            reason: Underlying failure description.
        """
        self.registry = registry
        self.reason = reason
        super().__init__(f"Registry unavailable: {registry}: {reason}")


class CosignError(ImageContractError):
    """Raised when the cosign CLI is missing or cannot be run."""

    exit_code: int = 8


class EvaluatorError(ImageContractError):
    """Raised when a rule evaluator fails to run.

    Producing failure results is a normal outcome; this error means the
    evaluator itself broke (bad policy source, crashed runner, bad output).
    """

    exit_code: int = 7


class NoResultsError(EvaluatorError):
    """Raised when rule evaluation produced no successes, warnings or failures.

    An empty evaluation usually means the input was malformed and no rule
    actually ran. It must never be reported as a clean pass.
    """

    def __init__(self, message: str = "no successes, warnings, or failures, check input") -> None:
        """Initialize NoResultsError.

        Args:
            message: Error message.
        """
        super().__init__(message)


class OperationCancelledError(ImageContractError):
    """Raised by collaborators when the caller's cancel signal is set."""

    exit_code: int = 130

    def __init__(self, operation: str) -> None:
        """Initialize OperationCancelledError.

        Args:
            operation: Name of the operation that was cancelled.
        """
        self.operation = operation
        super().__init__(f"Operation cancelled: {operation}")


class MultipleErrors(ImageContractError):
    """Several independent errors reported together.

    Attributes:
        errors: The individual error messages, in the order they occurred.

    Example:
        >>> str(MultipleErrors(["first", "second"])).splitlines()[0]
        '2 errors occurred:'
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize MultipleErrors.

        Args:
            errors: Individual error messages.
        """
        self.errors = errors
        noun = "error" if len(errors) == 1 else "errors"
        lines = [f"{len(errors)} {noun} occurred:"]
        lines.extend(f"\t* {e}" for e in errors)
        super().__init__("\n".join(lines))


class InvalidInputError(MultipleErrors):
    """Raised when the snapshot and/or the policy given to a command are unusable."""

    exit_code: int = 5


class ComponentValidationError(MultipleErrors):
    """Raised when one or more snapshot components could not be validated.

    ``errors`` holds one message per failed component, in component order.
    """


__all__ = [
    "ComponentValidationError",
    "CosignError",
    "DefinitionFileError",
    "EvaluatorError",
    "ImageContractError",
    "ImageReferenceError",
    "InvalidInputError",
    "MultipleErrors",
    "NoResultsError",
    "OperationCancelledError",
    "PolicyConfigurationError",
    "RegistryUnavailableError",
    "SnapshotInputError",
]
