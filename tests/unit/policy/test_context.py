"""Unit tests for PolicyContext effective time resolution and matchers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from image_contract.policy.context import PolicyContext
from image_contract.schemas.policy import PolicySpec

PINNED = datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
BUILD_TIME = datetime(2022, 6, 1, 10, 0, tzinfo=timezone.utc)

MakePolicy = Callable[..., PolicyContext]


class TestEffectiveTime:
    """Tests for effective time pinning and attestation time."""

    def test_unpinned_defaults_to_now(self, make_policy: MakePolicy) -> None:
        """Without an explicit time, the context starts at the current time."""
        before = datetime.now(timezone.utc)
        ctx = make_policy()
        after = datetime.now(timezone.utc)

        assert ctx.pinned is False
        assert before <= ctx.effective_time <= after

    def test_attestation_time_replaces_now(self, make_policy: MakePolicy) -> None:
        """The first attestation time becomes the effective time."""
        ctx = make_policy()

        ctx.set_attestation_time(BUILD_TIME)

        assert ctx.effective_time == BUILD_TIME

    def test_attestation_time_applied_once(self, make_policy: MakePolicy) -> None:
        """Later attestation times in the same run are ignored."""
        ctx = make_policy()

        ctx.set_attestation_time(BUILD_TIME)
        ctx.set_attestation_time(BUILD_TIME + timedelta(days=1))

        assert ctx.effective_time == BUILD_TIME

    def test_explicit_time_wins_over_attestation_time(self, make_policy: MakePolicy) -> None:
        """A pinned effective time is never overridden."""
        ctx = make_policy(effective_time=PINNED)

        ctx.set_attestation_time(BUILD_TIME)

        assert ctx.pinned is True
        assert ctx.effective_time == PINNED

    def test_naive_time_treated_as_utc(self) -> None:
        """Naive datetimes are interpreted as UTC."""
        ctx = PolicyContext(PolicySpec(), datetime(2021, 1, 1))

        assert ctx.effective_time == datetime(2021, 1, 1, tzinfo=timezone.utc)

    def test_offset_time_normalized_to_utc(self, make_policy: MakePolicy) -> None:
        """Aware datetimes are converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        ctx = make_policy()

        ctx.set_attestation_time(datetime(2022, 6, 1, 12, 0, tzinfo=plus_two))

        assert ctx.effective_time == BUILD_TIME
        assert ctx.effective_time.tzinfo == timezone.utc

    def test_fresh_context_is_unresolved(self, make_policy: MakePolicy) -> None:
        """fresh() forgets the attestation time resolved in a previous run."""
        ctx = make_policy()
        ctx.set_attestation_time(BUILD_TIME)

        fresh = ctx.fresh()
        fresh.set_attestation_time(BUILD_TIME + timedelta(days=2))

        assert fresh.effective_time == BUILD_TIME + timedelta(days=2)
        assert ctx.effective_time == BUILD_TIME

    def test_fresh_context_keeps_pin(self, make_policy: MakePolicy) -> None:
        """fresh() keeps an explicit effective time."""
        fresh = make_policy(effective_time=PINNED).fresh()

        assert fresh.pinned is True
        assert fresh.effective_time == PINNED


class TestMatcherConfiguration:
    """Tests for include/exclude/collections/non-blocking sets."""

    def test_empty_configuration(self, make_policy: MakePolicy) -> None:
        """A policy without configuration has empty sets."""
        ctx = make_policy()

        assert ctx.include == ()
        assert ctx.exclude == ()
        assert ctx.collections == ()
        assert ctx.non_blocking == ()

    def test_duplicates_removed_in_order(self, make_policy: MakePolicy) -> None:
        """Sets are de-duplicated keeping the first occurrence order."""
        ctx = make_policy(
            configuration={
                "include": ["b", "a", "b"],
                "exclude": ["x", "x"],
                "collections": ["minimal", "slsa2", "minimal"],
            },
            exceptions={"nonBlocking": ["n", "n"]},
        )

        assert ctx.include == ("b", "a")
        assert ctx.exclude == ("x",)
        assert ctx.collections == ("minimal", "slsa2")
        assert ctx.non_blocking == ("n",)

    def test_spec_accessors(self, make_policy: MakePolicy) -> None:
        """Public key and transparency log come from the policy document."""
        ctx = make_policy(publicKey="cosign.pub", rekorUrl="https://rekor.example.com")

        assert ctx.public_key == "cosign.pub"
        assert ctx.rekor_url == "https://rekor.example.com"
        assert "pinned=False" in repr(ctx)
