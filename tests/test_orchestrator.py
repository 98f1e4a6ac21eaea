"""End-to-end scorecard computation against a fake GitHub (scorecard/orchestrator.py)."""

from __future__ import annotations

import asyncio
import math
from datetime import timedelta

import httpx
import pytest
from github_fakes import (
    NOW,
    FakeGitHub,
    StaticEcosystems,
    engine_config,
    issue_event,
    iso,
    pr_event,
    push_event,
    review_event,
)

from devscore.config import EngineConfig, FetchConfig, ScoringConfig
from devscore.errors import RateLimitedError, ScorecardTimeoutError, UserNotFoundError
from devscore.fetcher.github import PARTIAL_PAGE_CAP, GitHubActivityFetcher
from devscore.fetcher.ratelimit import GitHubRateLimiter
from devscore.fetcher.repos import RepoMetadataResolver
from devscore.scorecard.orchestrator import ScorecardOrchestrator, resolve_window_days

BASE_URL = "https://api.github.test"
RECENT = iso(NOW - timedelta(days=2))

REPOS = {
    "ethereum/go-ethereum": {"topics": ["ethereum", "blockchain"], "language": "Go"},
    "pandas-dev/pandas": {"topics": ["data-science"], "language": "Python"},
    "alice/dotfiles": {"topics": [], "language": "Shell"},
    "alice/pandas-fork": {"topics": [], "language": "Python", "fork": True},
}

# --- Helpers ---------------------------------------------------------------


def _orchestrator(
    fake: FakeGitHub | None = None,
    config: EngineConfig | None = None,
    *,
    http: httpx.AsyncClient | None = None,
) -> ScorecardOrchestrator:
    config = config or engine_config(api_base_url=BASE_URL)
    client = http or (fake or FakeGitHub()).client()
    limiter = GitHubRateLimiter.from_config(config.fetch)
    fetcher = GitHubActivityFetcher(client, limiter, config.fetch, api_base_url=BASE_URL)

    def new_resolver() -> RepoMetadataResolver:
        return RepoMetadataResolver(client, limiter, config.fetch, api_base_url=BASE_URL)

    return ScorecardOrchestrator(
        fetcher, new_resolver, StaticEcosystems(), config, clock=lambda: NOW
    )


def _alice_github() -> FakeGitHub:
    """alice: one PR to go-ethereum, one review on someone else's pandas PR."""
    return FakeGitHub(
        users={"alice": [[
            pr_event("ethereum/go-ethereum", RECENT, action="opened"),
            review_event("pandas-dev/pandas", RECENT, author="bob", association="CONTRIBUTOR"),
        ]]},
        repos=REPOS,
    )


# === resolve_window_days ===================================================


class TestResolveWindowDays:
    CONFIG = EngineConfig()

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, 180),
            (30, 30),
            ("90", 90),
            (0, 180),
            (-4, 180),
            ("abc", 180),
            (10_000, 365),
            (365, 365),
        ],
    )
    def test_values(self, raw: object, expected: int):
        assert resolve_window_days(raw, self.CONFIG) == expected


# === compute_scorecard =====================================================


class TestComputeScorecard:
    async def test_alice_scenario(self):
        scorecard = await _orchestrator(_alice_github()).compute_scorecard("alice", 180)

        breakdown = scorecard.breakdown
        assert scorecard.username == "alice"
        assert scorecard.window_days == 180
        assert scorecard.contributions_considered == 2
        assert breakdown.base_by_kind == {"pull_request": 3.0, "review": 2.0}
        assert breakdown.maintainer_bonus == 0.0
        assert breakdown.ecosystem_counts == {"data-science": 1, "web3-infra": 1}
        assert breakdown.cross_ecosystem_bonus == pytest.approx(2 * math.sqrt(2))
        assert breakdown.total == pytest.approx(5 + 2 * math.sqrt(2))
        assert scorecard.partial is False
        assert scorecard.tier == "Beginner"
        assert scorecard.generated_at == "2026-10-17T12:00:00Z"
        assert [r.full_name for r in scorecard.repositories] == [
            "ethereum/go-ethereum",
            "pandas-dev/pandas",
        ]

    async def test_zero_activity(self):
        fake = FakeGitHub(users={"quiet": [[]]})
        scorecard = await _orchestrator(fake).compute_scorecard("quiet", 30)

        assert scorecard.contributions_considered == 0
        assert scorecard.breakdown.total == 0.0
        assert scorecard.breakdown.base_by_kind == {}
        assert scorecard.partial is False
        assert scorecard.explanations == []
        assert fake.count("/repos/") == 0

    async def test_idempotent_within_granule(self):
        orchestrator = _orchestrator(_alice_github())
        first = await orchestrator.compute_scorecard("alice", 180)
        second = await orchestrator.compute_scorecard("alice", 180)
        assert first == second

    async def test_repository_cache_is_per_computation(self):
        fake = _alice_github()
        orchestrator = _orchestrator(fake)
        await orchestrator.compute_scorecard("alice", 180)
        await orchestrator.compute_scorecard("alice", 180)
        assert fake.count("/repos/") == 4

    async def test_each_repository_resolved_once(self):
        fake = FakeGitHub(
            users={"alice": [[
                push_event("ethereum/go-ethereum", RECENT, commits=5),
                pr_event("ethereum/go-ethereum", RECENT),
                issue_event("ethereum/go-ethereum", RECENT),
            ]]},
            repos=REPOS,
        )
        scorecard = await _orchestrator(fake).compute_scorecard("alice", 180)

        assert scorecard.contributions_considered == 7
        assert scorecard.breakdown.base_by_kind == {
            "commit": 5.0,
            "issue": 0.5,
            "pull_request": 3.0,
        }
        assert fake.count("/repos/") == 1

    async def test_maintainer_actions_earn_bonus(self):
        fake = FakeGitHub(
            users={"alice": [[
                review_event("pandas-dev/pandas", RECENT, author="bob", association="MEMBER",
                             event_id="r1"),
                pr_event("pandas-dev/pandas", RECENT, action="closed", author="carol",
                         merged=True, merged_by="alice", event_id="p1"),
            ]]},
            repos=REPOS,
        )
        scorecard = await _orchestrator(fake).compute_scorecard("alice", 180)

        assert scorecard.breakdown.maintainer_bonus == 1.0
        assert scorecard.repositories[0].maintainer_actions == 2

    async def test_events_outside_window_are_ignored(self):
        old = iso(NOW - timedelta(days=40))
        fake = FakeGitHub(
            users={"alice": [[
                issue_event("alice/dotfiles", RECENT, event_id="new"),
                issue_event("alice/dotfiles", old, event_id="old"),
            ]]},
            repos=REPOS,
        )
        scorecard = await _orchestrator(fake).compute_scorecard("alice", 30)
        assert scorecard.contributions_considered == 1

    async def test_malformed_events_are_dropped(self):
        broken = issue_event("alice/dotfiles", RECENT, event_id="broken")
        del broken["created_at"]
        fake = FakeGitHub(
            users={"alice": [[issue_event("alice/dotfiles", RECENT), broken]]},
            repos=REPOS,
        )
        scorecard = await _orchestrator(fake).compute_scorecard("alice", 180)
        assert scorecard.contributions_considered == 1

    async def test_fork_discount(self):
        config = engine_config(
            api_base_url=BASE_URL, scoring=ScoringConfig(fork_discount=0.5)
        )
        fake = FakeGitHub(
            users={"alice": [[pr_event("alice/pandas-fork", RECENT)]]},
            repos=REPOS,
        )
        scorecard = await _orchestrator(fake, config).compute_scorecard("alice", 180)

        assert scorecard.breakdown.base_by_kind == {"pull_request": 1.5}
        assert scorecard.repositories[0].is_fork is True

    async def test_page_cap_yields_partial_scorecard(self):
        fetch = FetchConfig(
            per_page=1,
            max_pages=1,
            backoff_base_seconds=0.0,
            backoff_max_seconds=0.0,
            requests_per_second=1000.0,
            burst=1000,
        )
        fake = FakeGitHub(
            users={"alice": [
                [issue_event("alice/dotfiles", RECENT, event_id="1")],
                [issue_event("alice/dotfiles", RECENT, event_id="2")],
            ]},
            repos=REPOS,
        )
        config = engine_config(api_base_url=BASE_URL, fetch=fetch)
        scorecard = await _orchestrator(fake, config).compute_scorecard("alice", 180)

        assert scorecard.partial is True
        assert scorecard.partial_reason == PARTIAL_PAGE_CAP
        assert scorecard.contributions_considered == 1

    async def test_unknown_user(self):
        with pytest.raises(UserNotFoundError):
            await _orchestrator(FakeGitHub()).compute_scorecard("ghost", 180)

    @pytest.mark.parametrize("username", ["", "bad name", "-dash", "../../etc"])
    async def test_invalid_username_skips_network(self, username: str):
        fake = FakeGitHub()
        with pytest.raises(UserNotFoundError):
            await _orchestrator(fake).compute_scorecard(username, 180)
        assert fake.requests == []

    async def test_rate_limit_exhaustion(self):
        fake = _alice_github()
        fake.rate_limited_responses = 100
        with pytest.raises(RateLimitedError) as exc_info:
            await _orchestrator(fake).compute_scorecard("alice", 180)
        assert exc_info.value.status_code == 429

    async def test_deadline_exceeded(self):
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=[])

        config = engine_config(api_base_url=BASE_URL, request_timeout_seconds=0.05)
        http = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        with pytest.raises(ScorecardTimeoutError) as exc_info:
            await _orchestrator(config=config, http=http).compute_scorecard("alice", 180)
        assert exc_info.value.status_code == 504

    async def test_concurrent_computations_are_isolated(self):
        fake = _alice_github()
        fake.users["quiet"] = [[]]
        orchestrator = _orchestrator(fake)

        alice, quiet = await asyncio.gather(
            orchestrator.compute_scorecard("alice", 180),
            orchestrator.compute_scorecard("quiet", 180),
        )
        assert alice.contributions_considered == 2
        assert quiet.contributions_considered == 0
