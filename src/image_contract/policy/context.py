"""Per-run policy context.

PolicyContext holds the rule-matching configuration and the effective time for
exactly one verification run. It never performs I/O.

The effective time is resolved once:

- pinned at construction when the caller supplies an explicit time, in which
  case ``set_attestation_time`` is a no-op;
- otherwise "now" is used as a placeholder until the first call to
  ``set_attestation_time`` replaces it. Later calls are ignored.

Example:
    >>> from image_contract.schemas.policy import PolicySpec
    >>> ctx = PolicyContext(PolicySpec(publicKey="k8s://ns/key"))
    >>> ctx.pinned
    False
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from image_contract.schemas.policy import PolicySpec

logger = structlog.get_logger(__name__)


def _ordered_set(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


class PolicyContext:
    """Matching and temporal configuration for one verification run.

    Args:
        spec: Deserialized policy specification (already carrying any
            public key / transparency log overrides).
        effective_time: Explicit effective time. When given, it is pinned
            and the attestation time is ignored.

    Attributes:
        include: Include matchers, de-duplicated, in declaration order.
        exclude: Exclude matchers, de-duplicated, in declaration order.
        collections: Collection names, de-duplicated, in declaration order.
        non_blocking: Deprecated non-blocking matchers.
    """

    def __init__(
        self,
        spec: PolicySpec,
        effective_time: datetime | None = None,
    ) -> None:
        self._spec = spec
        configuration = spec.configuration
        self.include = _ordered_set(configuration.include if configuration else ())
        self.exclude = _ordered_set(configuration.exclude if configuration else ())
        self.collections = _ordered_set(configuration.collections if configuration else ())
        exceptions = spec.exceptions
        self.non_blocking = _ordered_set(exceptions.non_blocking if exceptions else ())

        self._explicit_time = effective_time
        self._pinned = effective_time is not None
        self._resolved = self._pinned
        if effective_time is None:
            self._effective_time = datetime.now(timezone.utc)
        else:
            self._effective_time = _as_utc(effective_time)

    @property
    def spec(self) -> PolicySpec:
        """The policy specification this context was built from."""
        return self._spec

    @property
    def public_key(self) -> str:
        """Public key material or reference (opaque to the core)."""
        return self._spec.public_key

    @property
    def rekor_url(self) -> str:
        """Transparency log URL, empty when not configured."""
        return self._spec.rekor_url

    @property
    def effective_time(self) -> datetime:
        """Instant governing temporal gating of rule results (UTC)."""
        return self._effective_time

    @property
    def pinned(self) -> bool:
        """True when the effective time was set explicitly by the caller."""
        return self._pinned

    def set_attestation_time(self, when: datetime) -> None:
        """Use the attestation build time as the effective time.

        No-op when the effective time was pinned at construction or was
        already replaced by an earlier call in this run.

        Args:
            when: Build time resolved from the attestations.
        """
        if self._pinned:
            logger.debug(
                "attestation_time_ignored",
                reason="effective time pinned",
                effective_time=self._effective_time.isoformat(),
            )
            return
        if self._resolved:
            logger.debug(
                "attestation_time_ignored",
                reason="effective time already resolved",
                effective_time=self._effective_time.isoformat(),
            )
            return

        self._effective_time = _as_utc(when)
        self._resolved = True
        logger.debug("attestation_time_applied", effective_time=self._effective_time.isoformat())

    def fresh(self) -> PolicyContext:
        """Return an equivalent, unresolved context for another run."""
        return PolicyContext(self._spec, self._explicit_time)

    def __repr__(self) -> str:
        return (
            f"PolicyContext(include={self.include!r}, exclude={self.exclude!r}, "
            f"collections={self.collections!r}, non_blocking={self.non_blocking!r}, "
            f"effective_time={self._effective_time.isoformat()!r}, pinned={self._pinned})"
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["PolicyContext"]
