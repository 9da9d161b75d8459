"""Contracts for the collaborators driven by the verification pipeline.

Signature verification and input serialization are delegated; the pipeline
only depends on these protocols. Every I/O-bound method accepts the caller's
cancellation signal.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from image_contract.schemas.attestation import SignatureInfo

if TYPE_CHECKING:
    from collections.abc import Sequence

    from image_contract.image.reference import ImageReference
    from image_contract.policy.context import PolicyContext
    from image_contract.schemas.attestation import AttestationRecord


class SignatureCheckFailed(Exception):
    """The image signature could not be verified (a soft gate)."""


class AttestationCheckFailed(Exception):
    """Attestation signatures could not be verified (a hard gate)."""


@runtime_checkable
class SigningVerifier(Protocol):
    """Checks registry access, image signatures and attestation signatures.

    Verification-domain failures are reported through the return value or
    SignatureCheckFailed/AttestationCheckFailed. Other exceptions mean the
    check could not run and abort the pipeline.
    """

    def probe_accessible(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> bool:
        """Return whether the image manifest can be fetched."""
        ...

    def resolve_digest(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> str:
        """Return the manifest digest of the image."""
        ...

    def verify_image_signature(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[SignatureInfo]:
        """Verify the image signature, raising SignatureCheckFailed."""
        ...

    def verify_attestation_signatures(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[AttestationRecord]:
        """Verify attestation signatures, raising AttestationCheckFailed."""
        ...


@runtime_checkable
class InputSerializer(Protocol):
    """Writes the rule engine input document for an image."""

    def write_input(
        self,
        image_ref: str,
        attestations: Sequence[AttestationRecord],
        directory: Path,
    ) -> Path:
        """Write the input document into ``directory`` and return its path."""
        ...


__all__ = [
    "AttestationCheckFailed",
    "InputSerializer",
    "SignatureCheckFailed",
    "SignatureInfo",
    "SigningVerifier",
]
