"""Pydantic models for policy specifications, attestations and rule results."""

from __future__ import annotations

from image_contract.schemas.attestation import (
    AttestationRecord,
    InTotoStatement,
    StatementSubject,
)
from image_contract.schemas.policy import (
    PolicyConfiguration,
    PolicyExceptions,
    PolicySource,
    PolicySpec,
)
from image_contract.schemas.results import CheckResult, Result, RuleMetadata

__all__ = [
    "AttestationRecord",
    "CheckResult",
    "InTotoStatement",
    "PolicyConfiguration",
    "PolicyExceptions",
    "PolicySource",
    "PolicySpec",
    "Result",
    "RuleMetadata",
    "StatementSubject",
]
