"""Definition file validation."""

from __future__ import annotations

from image_contract.definition.validate import validate_definition

__all__ = ["validate_definition"]
