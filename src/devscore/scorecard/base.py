"""Port: scorecard computation."""

from __future__ import annotations

from typing import Protocol

from devscore.models import Scorecard


class ScorecardServicePort(Protocol):
    """Port for computing a user's scorecard over a trailing window."""

    async def compute_scorecard(self, username: str, window_days: int) -> Scorecard:
        """Fetch, classify and score the user's activity."""
        ...
