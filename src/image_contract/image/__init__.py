"""Single-image verification.

Example:
    >>> from image_contract.image import ImageValidator, CosignVerifier
    >>> validator = ImageValidator(CosignVerifier())
    >>> output = validator.validate("quay.io/org/app:v1", policy)
"""

from __future__ import annotations

from image_contract.image.collaborators import (
    AttestationCheckFailed,
    InputSerializer,
    SignatureCheckFailed,
    SigningVerifier,
)
from image_contract.image.cosign_verifier import CosignVerifier
from image_contract.image.input_file import JsonInputSerializer
from image_contract.image.reference import ImageReference
from image_contract.image.validate import ImageValidator, validate_image

__all__ = [
    "AttestationCheckFailed",
    "CosignVerifier",
    "ImageReference",
    "ImageValidator",
    "InputSerializer",
    "JsonInputSerializer",
    "SignatureCheckFailed",
    "SigningVerifier",
    "validate_image",
]
