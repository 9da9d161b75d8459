"""Unit tests for attestation syntax checks and subject filtering."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from image_contract.attestation.statements import (
    filter_matching_attestations,
    validate_attestation_syntax,
)
from image_contract.schemas.attestation import AttestationRecord

IMAGE_DIGEST = "sha256:" + "a" * 64
OTHER_DIGEST = "sha256:" + "b" * 64

RecordFactory = Callable[..., AttestationRecord]


class TestValidateAttestationSyntax:
    """Tests for the in-toto statement syntax check."""

    def test_valid_statements(self, slsa_record: RecordFactory) -> None:
        """Well-formed statements pass without errors."""
        records = [slsa_record(), slsa_record(digest=OTHER_DIGEST)]

        valid, errors = validate_attestation_syntax(records)

        assert valid == records
        assert errors == []

    def test_invalid_statement_excluded(
        self, slsa_record: RecordFactory, make_statement: Callable[..., dict[str, Any]]
    ) -> None:
        """Invalid statements are reported and excluded, valid ones kept."""
        broken = make_statement()
        del broken["predicateType"]
        bad = AttestationRecord(statement=broken)
        good = slsa_record()

        valid, errors = validate_attestation_syntax([bad, good])

        assert valid == [good]
        assert len(errors) == 1
        assert errors[0].startswith("attestation 0:")
        assert "predicateType" in errors[0]

    def test_unknown_statement_type(self, make_statement: Callable[..., dict[str, Any]]) -> None:
        """Only in-toto statement types are accepted."""
        statement = make_statement()
        statement["_type"] = "https://example.com/Statement"

        valid, errors = validate_attestation_syntax([AttestationRecord(statement=statement)])

        assert valid == []
        assert len(errors) == 1

    def test_subject_without_digest(self, make_statement: Callable[..., dict[str, Any]]) -> None:
        """Subjects must carry at least one digest."""
        statement = make_statement()
        statement["subject"] = [{"name": "quay.io/org/app", "digest": {}}]

        valid, _ = validate_attestation_syntax([AttestationRecord(statement=statement)])

        assert valid == []

    def test_no_attestations(self) -> None:
        """An empty attestation list fails the syntax check."""
        valid, errors = validate_attestation_syntax([])

        assert valid == []
        assert errors == ["no attestation data"]


class TestFilterMatchingAttestations:
    """Tests for subject digest filtering."""

    def test_keeps_matching_in_order(self, slsa_record: RecordFactory) -> None:
        """Only attestations about the image digest remain."""
        first = slsa_record(finished_on="2022-01-01T00:00:00Z")
        other = slsa_record(digest=OTHER_DIGEST)
        second = slsa_record(finished_on="2022-02-01T00:00:00Z")

        assert filter_matching_attestations([first, other, second], IMAGE_DIGEST) == [
            first,
            second,
        ]

    def test_multiple_subjects(self, make_statement: Callable[..., dict[str, Any]]) -> None:
        """A statement matches when any subject carries the digest."""
        statement = make_statement(digest=OTHER_DIGEST)
        statement["subject"].append({"name": "app", "digest": {"sha256": "a" * 64}})
        record = AttestationRecord(statement=statement)

        assert filter_matching_attestations([record], IMAGE_DIGEST) == [record]

    def test_none_match(self, slsa_record: RecordFactory) -> None:
        """No matching subject yields an empty list."""
        assert filter_matching_attestations([slsa_record(digest=OTHER_DIGEST)], IMAGE_DIGEST) == []
