"""Cooperative deadline shared by every stage of one scorecard computation."""

from __future__ import annotations

import time

from devscore.errors import ScorecardTimeoutError


class Deadline:
    """Monotonic deadline checked at each suspension point.

    The orchestrator also arms ``asyncio.timeout`` with ``remaining()`` so
    in-flight awaits are cancelled; ``check`` covers the points between them.
    """

    __slots__ = ("_expires_at", "budget")

    def __init__(self, budget_seconds: float) -> None:
        self.budget = budget_seconds
        self._expires_at = time.monotonic() + budget_seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, stage: str) -> None:
        """Raise ScorecardTimeoutError if the deadline has passed."""
        if self.expired:
            raise ScorecardTimeoutError(
                f"Scorecard computation exceeded its {self.budget:g}s budget during {stage}."
            )

    def allows(self, delay: float) -> bool:
        """Return True when waiting ``delay`` seconds still leaves time to finish."""
        return delay < self.remaining()
