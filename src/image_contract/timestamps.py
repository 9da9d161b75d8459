"""RFC3339 timestamp helpers.

Two parsers live here because two different contracts exist:

- ``parse_rfc3339`` accepts any RFC3339 timestamp (offsets, fractional
  seconds down to nanoseconds). Used for attestation build times and for the
  explicit effective-time override.
- ``parse_effective_on`` accepts only ``YYYY-MM-DDTHH:MM:SSZ``, the fixed
  format rule authors use for ``effective_on`` metadata.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

EFFECTIVE_ON_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_EFFECTIVE_ON_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

_RFC3339_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microsecond precision are truncated.

    Args:
        value: Timestamp string, e.g. ``2010-11-12T13:14:15.000000016Z``.

    Returns:
        Timezone-aware datetime normalized to UTC.

    Raises:
        ValueError: If the value is not an RFC3339 timestamp.

    Example:
        >>> parse_rfc3339("2023-01-02T03:04:05+01:00").isoformat()
        '2023-01-02T02:04:05+00:00'
    """
    match = _RFC3339_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"not an RFC3339 timestamp: {value!r}")

    fraction = match.group("fraction") or ""
    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"

    normalized = f"{match.group('date')}T{match.group('time')}"
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    normalized += offset

    return datetime.fromisoformat(normalized).astimezone(timezone.utc)


def parse_effective_on(value: str) -> datetime:
    """Parse an ``effective_on`` value in the fixed rule metadata format.

    Args:
        value: Timestamp string such as ``2022-12-01T00:00:00Z``.

    Returns:
        Timezone-aware UTC datetime.

    Raises:
        ValueError: If the value does not match ``YYYY-MM-DDTHH:MM:SSZ``.
    """
    if not _EFFECTIVE_ON_PATTERN.match(value):
        raise ValueError(f"not in YYYY-MM-DDTHH:MM:SSZ format: {value!r}")
    return datetime.strptime(value, EFFECTIVE_ON_FORMAT).replace(tzinfo=timezone.utc)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as second-precision RFC3339 in UTC."""
    return value.astimezone(timezone.utc).strftime(EFFECTIVE_ON_FORMAT)


__all__ = [
    "EFFECTIVE_ON_FORMAT",
    "format_rfc3339",
    "parse_effective_on",
    "parse_rfc3339",
]
