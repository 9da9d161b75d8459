"""Attestation syntax checks, subject filtering and build time resolution."""

from __future__ import annotations

from image_contract.attestation.statements import (
    filter_matching_attestations,
    validate_attestation_syntax,
)
from image_contract.attestation.time_resolver import (
    build_finished_on,
    determine_attestation_time,
)

__all__ = [
    "build_finished_on",
    "determine_attestation_time",
    "filter_matching_attestations",
    "validate_attestation_syntax",
]
