"""Sequence fetch, resolve, normalize, classify and aggregate under one deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from devscore.config import EngineConfig
from devscore.deadline import Deadline
from devscore.ecosystems.base import EcosystemSourcePort
from devscore.ecosystems.classifier import EcosystemClassifier
from devscore.errors import ScorecardTimeoutError, UserNotFoundError
from devscore.fetcher.base import ActivityFetcherPort, RepoResolverPort
from devscore.fetcher.github import is_valid_username
from devscore.models import RawEvent, Scorecard, TimeWindow
from devscore.scoring.aggregator import aggregate
from devscore.scoring.explain import explain, summarize_repositories, tier_for
from devscore.scoring.normalizer import normalize_all

logger = logging.getLogger(__name__)


def resolve_window_days(raw: object, config: EngineConfig) -> int:
    """Coerce a requested window to a usable day count.

    Absent, non-numeric and non-positive values fall back to
    ``default_window_days``; large values are clamped to ``max_window_days``.
    """
    try:
        days = int(str(raw).strip()) if raw is not None else 0
    except ValueError:
        days = 0
    if days <= 0:
        days = config.default_window_days
    return min(days, config.max_window_days)


class ScorecardOrchestrator:
    """Compute one Scorecard per call; holds no per-request state between calls."""

    def __init__(
        self,
        fetcher: ActivityFetcherPort,
        resolver_factory: Callable[[], RepoResolverPort],
        ecosystems: EcosystemSourcePort,
        config: EngineConfig,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._resolver_factory = resolver_factory
        self._ecosystems = ecosystems
        self._config = config
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def compute_scorecard(self, username: str, window_days: int) -> Scorecard:
        """Build the scorecard for ``username`` over the trailing ``window_days``.

        Raises:
            UserNotFoundError: The username is invalid or unknown to GitHub.
            RateLimitedError: The GitHub quota could not be honoured in time.
            ScorecardTimeoutError: The overall deadline passed.
        """
        username = username.strip()
        if not is_valid_username(username):
            raise UserNotFoundError(username)

        window = TimeWindow.resolve(
            window_days,
            now=self._clock(),
            granularity_seconds=self._config.now_granularity_seconds,
        )
        deadline = Deadline(self._config.request_timeout_seconds)
        resolver = self._resolver_factory()
        started = time.monotonic()
        try:
            async with asyncio.timeout(deadline.remaining()):
                scorecard = await self._run(username, window, deadline, resolver)
        except TimeoutError as exc:
            raise ScorecardTimeoutError(
                f"Scorecard for '{username}' exceeded the "
                f"{self._config.request_timeout_seconds:g}s time budget."
            ) from exc
        finally:
            resolver.clear()

        logger.info(
            "Scorecard for '%s' (%dd): %d contributions, total=%.2f%s in %.2fs",
            username,
            window.days,
            scorecard.contributions_considered,
            scorecard.breakdown.total,
            " [partial]" if scorecard.partial else "",
            time.monotonic() - started,
        )
        return scorecard

    async def _run(
        self,
        username: str,
        window: TimeWindow,
        deadline: Deadline,
        resolver: RepoResolverPort,
    ) -> Scorecard:
        snapshot = self._ecosystems.snapshot()
        scoring = self._config.scoring

        # 1. Fetch (suspends on network I/O only)
        stream = self._fetcher.fetch(username, window, deadline)
        events: list[RawEvent] = [event async for event in stream]

        # 2. Hydrate repository metadata once per distinct repository
        deadline.check("repository resolution")
        resolved = await resolver.resolve_all(
            (e.repository for e in events if e.repository is not None),
            deadline,
        )
        hydrated = [
            replace(e, repository=resolved.get(e.repository.full_name.lower(), e.repository))
            if e.repository is not None
            else e
            for e in events
        ]

        # 3. Normalize and classify
        contributions = normalize_all(hydrated, scoring)
        classifier = EcosystemClassifier(snapshot)
        classified = [replace(c, ecosystems=classifier.tags_for(c.repo)) for c in contributions]

        # 4. Aggregate (join point)
        deadline.check("aggregation")
        breakdown = aggregate(classified, scoring)

        return Scorecard(
            username=username,
            window_days=window.days,
            contributions_considered=len(classified),
            breakdown=breakdown,
            generated_at=window.until.strftime("%Y-%m-%dT%H:%M:%SZ"),
            partial=stream.partial,
            partial_reason=stream.partial_reason,
            tier=tier_for(breakdown.total, scoring),
            explanations=explain(breakdown, classified, scoring),
            repositories=summarize_repositories(classified, scoring),
        )
