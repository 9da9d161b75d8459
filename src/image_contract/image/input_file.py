"""Rule engine input document for an image."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from image_contract.schemas.attestation import AttestationRecord

logger = structlog.get_logger(__name__)

INPUT_FILENAME = "input.json"


class JsonInputSerializer:
    """Writes ``input.json`` as consumed by the release policy rules::

        {"image": {"ref": "<registry>/<repo>@sha256:..."},
         "attestations": [<in-toto statement>, ...]}
    """

    def build_input(
        self,
        image_ref: str,
        attestations: Sequence[AttestationRecord],
    ) -> dict[str, Any]:
        """Build the input document."""
        return {
            "image": {"ref": image_ref},
            "attestations": [dict(record.statement) for record in attestations],
        }

    def write_input(
        self,
        image_ref: str,
        attestations: Sequence[AttestationRecord],
        directory: Path,
    ) -> Path:
        """Write the input document into ``directory``.

        Returns:
            Path of the written file.
        """
        path = directory / INPUT_FILENAME
        path.write_text(json.dumps(self.build_input(image_ref, attestations)), encoding="utf-8")
        logger.debug("input_written", path=str(path), attestations=len(attestations))
        return path


__all__ = ["INPUT_FILENAME", "JsonInputSerializer"]
