"""Tests for domain models and the cooperative deadline."""

from __future__ import annotations

import dataclasses
import time
from datetime import UTC, datetime, timedelta

import pytest

from devscore.deadline import Deadline
from devscore.errors import ScorecardTimeoutError
from devscore.models import Contribution, EventKind, RepoRef, TimeWindow

NOW = datetime(2026, 10, 17, 12, 0, 37, 123456, tzinfo=UTC)


class TestTimeWindow:
    def test_truncates_now_to_granularity(self):
        window = TimeWindow.resolve(30, now=NOW, granularity_seconds=60)
        assert window.until == datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
        assert window.since == window.until - timedelta(days=30)
        assert window.days == 30

    def test_same_granule_same_boundaries(self):
        a = TimeWindow.resolve(7, now=NOW)
        b = TimeWindow.resolve(7, now=NOW + timedelta(seconds=20))
        assert a == b

    def test_naive_now_is_treated_as_utc(self):
        window = TimeWindow.resolve(1, now=NOW.replace(tzinfo=None))
        assert window.until.tzinfo is not None
        assert window.until == datetime(2026, 10, 17, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize("days", [0, -5])
    def test_non_positive_days_rejected(self, days: int):
        with pytest.raises(ValueError, match="positive"):
            TimeWindow.resolve(days, now=NOW)

    def test_boundaries_inclusive(self):
        window = TimeWindow.resolve(180, now=NOW)
        assert window.contains(window.since)
        assert window.contains(window.until)
        assert not window.contains(window.since - timedelta(microseconds=1))
        assert not window.contains(window.until + timedelta(microseconds=1))


class TestRepoRef:
    def test_full_name(self):
        assert RepoRef(owner="ethereum", name="go-ethereum").full_name == "ethereum/go-ethereum"

    def test_frozen(self):
        repo = RepoRef(owner="a", name="b")
        with pytest.raises(dataclasses.FrozenInstanceError):
            repo.name = "c"  # type: ignore[misc]


class TestContribution:
    def test_defaults(self):
        c = Contribution(
            kind=EventKind.COMMIT,
            repo=RepoRef(owner="a", name="b"),
            timestamp=NOW,
            weight=1.0,
        )
        assert c.is_maintainer_action is False
        assert c.ecosystems == frozenset()


class TestDeadline:
    def test_fresh_deadline_allows_short_waits(self):
        deadline = Deadline(10.0)
        assert not deadline.expired
        assert deadline.allows(1.0)
        assert not deadline.allows(60.0)
        deadline.check("anything")

    def test_expired_deadline_raises(self):
        deadline = Deadline(0.0)
        time.sleep(0.001)
        assert deadline.expired
        assert deadline.remaining() == 0.0
        with pytest.raises(ScorecardTimeoutError, match="event pagination"):
            deadline.check("event pagination")
