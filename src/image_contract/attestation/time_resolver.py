"""Resolve the instant that governs temporal policy gating.

The most recent ``buildFinishedOn`` among SLSA provenance attestations is the
best approximation of when the image was produced. Records that cannot yield
a build time are skipped; resolution never fails.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from image_contract.schemas.attestation import SLSA_PROVENANCE_V02
from image_contract.timestamps import parse_rfc3339

if TYPE_CHECKING:
    from collections.abc import Iterable

    from image_contract.schemas.attestation import AttestationRecord

logger = structlog.get_logger(__name__)

BUILD_FINISHED_ON_PATH = ("predicate", "metadata", "buildFinishedOn")


def _lookup(document: Any, path: tuple[str, ...]) -> Any:
    node = document
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise KeyError("/" + "/".join(path))
        node = node[key]
    return node


def build_finished_on(record: AttestationRecord, index: int = 0) -> datetime | None:
    """Read the build finish time of one attestation.

    Args:
        record: Verified attestation.
        index: Position of the record, used in diagnostics only.

    Returns:
        UTC build finish time, or None if the record does not provide one.
    """
    if record.predicate_type != SLSA_PROVENANCE_V02:
        logger.debug(
            "attestation_time_skipped",
            index=index,
            reason="not a SLSA provenance attestation",
            predicate_type=record.predicate_type,
        )
        return None

    try:
        value = _lookup(record.statement, BUILD_FINISHED_ON_PATH)
    except KeyError:
        logger.debug("attestation_time_skipped", index=index, reason="buildFinishedOn missing")
        return None

    if not isinstance(value, str):
        logger.debug(
            "attestation_time_skipped",
            index=index,
            reason="unexpected buildFinishedOn value",
            value=repr(value),
        )
        return None

    try:
        return parse_rfc3339(value)
    except ValueError:
        logger.debug(
            "attestation_time_skipped",
            index=index,
            reason="buildFinishedOn is not RFC3339",
            value=value,
        )
        return None


def determine_attestation_time(records: Iterable[AttestationRecord]) -> datetime | None:
    """Return the most recent build finish time among the attestations.

    Args:
        records: Verified attestations, typically already filtered to the
            image being validated.

    Returns:
        The maximum parsed ``buildFinishedOn`` (UTC), or None when no record
        yields a usable timestamp.

    Example:
        >>> determine_attestation_time([]) is None
        True
    """
    times = [
        when
        for index, record in enumerate(records)
        if (when := build_finished_on(record, index)) is not None
    ]
    if not times:
        logger.debug("attestation_time_unresolved")
        return None

    attestation_time = max(times)
    logger.debug("attestation_time_determined", attestation_time=attestation_time.isoformat())
    return attestation_time


__all__ = [
    "BUILD_FINISHED_ON_PATH",
    "build_finished_on",
    "determine_attestation_time",
]
