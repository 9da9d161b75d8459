"""In-toto attestation models.

AttestationRecord wraps one verified attestation statement. InTotoStatement
is the structural schema used by the attestation syntax check.

See Also:
    - https://github.com/in-toto/attestation/tree/main/spec
    - https://slsa.dev/provenance/v0.2
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

IN_TOTO_STATEMENT_V01 = "https://in-toto.io/Statement/v0.1"
IN_TOTO_STATEMENT_V1 = "https://in-toto.io/Statement/v1"
SLSA_PROVENANCE_V02 = "https://slsa.dev/provenance/v0.2"


class StatementSubject(BaseModel):
    """Artifact an in-toto statement is about."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(default="", description="Artifact name")
    digest: dict[str, str] = Field(..., min_length=1, description="Algorithm to hex digest")


class InTotoStatement(BaseModel):
    """Structural schema of an in-toto statement.

    Only the envelope of the statement is validated; predicates are opaque.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: Literal[
        "https://in-toto.io/Statement/v0.1",
        "https://in-toto.io/Statement/v1",
    ] = Field(..., alias="_type")
    predicate_type: str = Field(..., alias="predicateType", min_length=1)
    subject: list[StatementSubject] = Field(..., min_length=1)
    predicate: dict[str, Any] = Field(default_factory=dict)


class AttestationRecord(BaseModel):
    """One attestation whose signature has been verified.

    Attributes:
        statement: The decoded in-toto statement.

    Example:
        >>> record = AttestationRecord(statement={
        ...     "predicateType": SLSA_PROVENANCE_V02,
        ...     "subject": [{"name": "r/i", "digest": {"sha256": "abc"}}],
        ... })
        >>> sorted(record.subject_digests)
        ['sha256:abc']
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    statement: dict[str, Any] = Field(..., description="Decoded in-toto statement")

    @property
    def predicate_type(self) -> str | None:
        """Statement predicate type, if it is a string."""
        value = self.statement.get("predicateType")
        return value if isinstance(value, str) else None

    @property
    def subject_digests(self) -> frozenset[str]:
        """All subject digests, formatted as ``<algorithm>:<hex>``."""
        digests: set[str] = set()
        subjects = self.statement.get("subject")
        if not isinstance(subjects, list):
            return frozenset()
        for subject in subjects:
            if not isinstance(subject, dict):
                continue
            digest = subject.get("digest")
            if not isinstance(digest, dict):
                continue
            for algorithm, value in digest.items():
                if isinstance(value, str):
                    digests.add(f"{algorithm}:{value}")
        return frozenset(digests)

    @classmethod
    def from_envelope(cls, envelope: dict[str, Any]) -> AttestationRecord:
        """Decode a DSSE envelope (as printed by cosign) into a record.

        Args:
            envelope: Mapping with a base64 ``payload`` field.

        Returns:
            AttestationRecord holding the decoded statement.

        Raises:
            ValueError: If the payload is missing or not a JSON object.
        """
        payload = envelope.get("payload")
        if not isinstance(payload, str) or not payload:
            raise ValueError("envelope has no payload")
        try:
            statement = json.loads(base64.b64decode(payload))
        except (binascii.Error, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"envelope payload is not a JSON statement: {e}") from e
        if not isinstance(statement, dict):
            raise ValueError("envelope payload is not a JSON object")
        return cls(statement=statement)


class SignatureInfo(BaseModel):
    """Signature metadata reported for a verified image.

    Attributes:
        key_id: Key identifier, when the signature carries one.
        signature: Base64 signature.
        certificate: PEM certificate, for keyless signatures.
        chain: PEM certificate chain.
        metadata: Additional annotations (e.g. signing identity).
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    key_id: str = Field(default="", alias="keyid")
    signature: str = Field(default="", alias="sig")
    certificate: str = Field(default="")
    chain: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire names, omitting empty fields."""
        return self.model_dump(by_alias=True, exclude_defaults=True)


__all__ = [
    "AttestationRecord",
    "SignatureInfo",
    "IN_TOTO_STATEMENT_V01",
    "IN_TOTO_STATEMENT_V1",
    "InTotoStatement",
    "SLSA_PROVENANCE_V02",
    "StatementSubject",
]
