"""Load a policy specification and build the PolicyContext for a run.

A policy reference is one of:

- empty: an empty specification (the public key may still come from
  ``public_key``);
- inline text containing ``{``: JSON, or YAML when it is not valid JSON;
- a path to an existing JSON/YAML file;
- anything else is a cluster resource reference (``[namespace/]name``), which
  this tool does not resolve.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from image_contract.errors import PolicyConfigurationError
from image_contract.policy.context import PolicyContext
from image_contract.schemas.policy import PolicySpec
from image_contract.timestamps import parse_rfc3339

logger = structlog.get_logger(__name__)

NOW = "now"
ATTESTATION = "attestation"


def load_document(text: str) -> Any:
    """Decode JSON text, falling back to YAML when it is not valid JSON.

    Tab-indented JSON, which YAML rejects, is accepted.

    Raises:
        yaml.YAMLError: If the text is neither JSON nor YAML.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def parse_policy_spec(text: str) -> PolicySpec:
    """Parse JSON or YAML policy text.

    Args:
        text: Policy document.

    Returns:
        Parsed PolicySpec.

    Raises:
        PolicyConfigurationError: If the text is not a valid policy document.
    """
    try:
        data: Any = load_document(text)
    except yaml.YAMLError as e:
        raise PolicyConfigurationError(f"unable to parse policy specification: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PolicyConfigurationError(
            "unable to parse policy specification: expected a mapping, "
            f"got {type(data).__name__}"
        )

    try:
        return PolicySpec.model_validate(data)
    except ValidationError as e:
        raise PolicyConfigurationError(f"unable to parse policy specification: {e}") from e


def read_policy_spec(policy_ref: str) -> PolicySpec:
    """Resolve a policy reference into a PolicySpec.

    Args:
        policy_ref: Empty string, inline JSON/YAML, or a file path.

    Returns:
        Parsed PolicySpec.

    Raises:
        PolicyConfigurationError: If the reference cannot be resolved or parsed.
    """
    if not policy_ref:
        logger.debug("empty_policy_used")
        return PolicySpec()

    if "{" in policy_ref:
        logger.debug("inline_policy_read")
        return parse_policy_spec(policy_ref)

    path = Path(policy_ref)
    if path.is_file():
        logger.debug("policy_file_read", path=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PolicyConfigurationError(f"unable to read policy file {path}: {e}") from e
        return parse_policy_spec(text)

    raise PolicyConfigurationError(
        f"unable to fetch policy {policy_ref!r}: cluster policy references are not supported, "
        "provide the policy as JSON/YAML text or a file path"
    )


def parse_effective_time(value: str | None) -> datetime | None:
    """Parse an effective-time setting.

    Args:
        value: ``None``, ``"now"``, ``"attestation"`` or an RFC3339 timestamp.

    Returns:
        The pinned instant, or None when the time is left to be resolved
        during the run.

    Raises:
        PolicyConfigurationError: If the value is not a recognized setting.
    """
    if value is None or value == "" or value.lower() in (NOW, ATTESTATION):
        return None
    try:
        return parse_rfc3339(value)
    except ValueError as e:
        raise PolicyConfigurationError(f"invalid effective time {value!r}: {e}") from e


def load_policy(
    policy_ref: str,
    *,
    public_key: str = "",
    rekor_url: str = "",
    effective_time: str | None = None,
) -> PolicyContext:
    """Build the PolicyContext for a verification run.

    Args:
        policy_ref: Policy reference (see module docstring).
        public_key: Public key override; replaces the policy value when set.
        rekor_url: Transparency log override; replaces the policy value when set.
        effective_time: ``None``/``"now"``/``"attestation"`` or RFC3339.

    Returns:
        PolicyContext with overrides applied.

    Raises:
        PolicyConfigurationError: If the policy cannot be read or provides
            no public key.

    Example:
        >>> ctx = load_policy('{"publicKey": "k8s://ns/key"}', effective_time="2022-01-01T00:00:00Z")
        >>> ctx.pinned
        True
    """
    spec = read_policy_spec(policy_ref)

    updates: dict[str, str] = {}
    if rekor_url and rekor_url != spec.rekor_url:
        updates["rekor_url"] = rekor_url
        logger.debug("policy_rekor_url_overridden", rekor_url=rekor_url)
    if public_key and public_key != spec.public_key:
        updates["public_key"] = public_key
        logger.debug("policy_public_key_overridden")
    if updates:
        spec = spec.model_copy(update=updates)

    if not spec.public_key:
        raise PolicyConfigurationError("policy must provide a public key")

    when = parse_effective_time(effective_time)
    if when is None:
        logger.debug("effective_time_unpinned")
    else:
        logger.debug("effective_time_pinned", effective_time=when.isoformat())

    return PolicyContext(spec, when)


__all__ = [
    "ATTESTATION",
    "NOW",
    "load_document",
    "load_policy",
    "parse_effective_time",
    "parse_policy_spec",
    "read_policy_spec",
]
