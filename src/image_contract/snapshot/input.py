"""Application snapshot input.

A snapshot lists the component images of an application:

    application: app1
    components:
      - name: nodejs
        containerImage: quay.io/org/nodejs-app:877418e

It is given as JSON/YAML text, a file, or derived from a single image
reference (one component named ``Unnamed``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from image_contract.errors import SnapshotInputError
from image_contract.policy.loader import load_document

logger = structlog.get_logger(__name__)

UNNAMED_COMPONENT = "Unnamed"


class SnapshotComponent(BaseModel):
    """One component image of a snapshot."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(default="")
    container_image: str = Field(default="", alias="containerImage")


class SnapshotSpec(BaseModel):
    """Application snapshot specification.

    Attributes:
        application: Application name.
        components: Component images to validate, in order.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    application: str = Field(default="")
    components: list[SnapshotComponent] = Field(default_factory=list)


def parse_snapshot(text: str) -> SnapshotSpec:
    """Parse snapshot JSON or YAML text.

    Raises:
        SnapshotInputError: If the text is not a snapshot specification.
    """
    try:
        data: Any = load_document(text)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        return SnapshotSpec.model_validate(data)
    except (yaml.YAMLError, ValueError, ValidationError) as e:
        raise SnapshotInputError(
            f"unable to parse Snapshot specification from input: {e}"
        ) from e


def determine_input_spec(
    *,
    image: str | None = None,
    json_input: str | None = None,
    file_path: str | Path | None = None,
) -> SnapshotSpec:
    """Build the snapshot to validate from exactly one input source.

    A file takes precedence over inline text, which takes precedence over a
    single image reference.

    Args:
        image: Single image reference.
        json_input: Snapshot as JSON/YAML text.
        file_path: Path to a snapshot JSON/YAML file.

    Returns:
        Parsed SnapshotSpec.

    Raises:
        SnapshotInputError: If no input is given or it cannot be parsed.

    Example:
        >>> determine_input_spec(image="registry/image:tag").components[0].name
        'Unnamed'
    """
    if file_path:
        path = Path(file_path)
        logger.debug("snapshot_file_read", path=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SnapshotInputError(f"unable to read Snapshot specification file: {e}") from e
        return parse_snapshot(text)

    if json_input:
        return parse_snapshot(json_input)

    if image:
        return SnapshotSpec(
            components=[SnapshotComponent(name=UNNAMED_COMPONENT, container_image=image)]
        )

    raise SnapshotInputError("neither Snapshot nor image reference provided to validate")


__all__ = [
    "SnapshotComponent",
    "SnapshotSpec",
    "UNNAMED_COMPONENT",
    "determine_input_spec",
    "parse_snapshot",
]
