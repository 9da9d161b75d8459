"""Attestation syntax validation and subject filtering."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from image_contract.schemas.attestation import InTotoStatement

if TYPE_CHECKING:
    from collections.abc import Sequence

    from image_contract.schemas.attestation import AttestationRecord

logger = structlog.get_logger(__name__)


def validate_attestation_syntax(
    records: Sequence[AttestationRecord],
) -> tuple[list[AttestationRecord], list[str]]:
    """Split attestations into structurally valid ones and error messages.

    Args:
        records: Verified attestations.

    Returns:
        Tuple of (valid records, one error message per invalid record).
    """
    valid: list[AttestationRecord] = []
    errors: list[str] = []
    for index, record in enumerate(records):
        try:
            InTotoStatement.model_validate(record.statement)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            errors.append(f"attestation {index}: {details}")
            logger.debug("attestation_syntax_invalid", index=index, errors=details)
            continue
        valid.append(record)

    if not records:
        errors.append("no attestation data")

    return valid, errors


def filter_matching_attestations(
    records: Sequence[AttestationRecord],
    digest: str,
) -> list[AttestationRecord]:
    """Keep only attestations with a subject matching the image digest.

    Args:
        records: Attestations to filter.
        digest: Image digest, e.g. ``sha256:abc...``.

    Returns:
        Matching attestations, in input order.
    """
    matching = [record for record in records if digest in record.subject_digests]
    logger.debug(
        "attestations_filtered",
        digest=digest,
        total=len(records),
        matching=len(matching),
    )
    return matching


__all__ = [
    "filter_matching_attestations",
    "validate_attestation_syntax",
]
