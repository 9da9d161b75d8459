"""Application snapshot input, validation and reporting."""

from __future__ import annotations

from image_contract.snapshot.input import (
    SnapshotComponent,
    SnapshotSpec,
    determine_input_spec,
    parse_snapshot,
)
from image_contract.snapshot.report import FORMATS, Component, Report
from image_contract.snapshot.validate import component_from_output, validate_snapshot

__all__ = [
    "Component",
    "FORMATS",
    "Report",
    "SnapshotComponent",
    "SnapshotSpec",
    "component_from_output",
    "determine_input_spec",
    "parse_snapshot",
    "validate_snapshot",
]
