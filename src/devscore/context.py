"""Composition root shared by the HTTP app and the MCP server."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from devscore.config import EngineConfig, load_config
from devscore.ecosystems.registry import EcosystemRegistry
from devscore.fetcher.auth import github_headers, resolve_github_token
from devscore.fetcher.github import GitHubActivityFetcher
from devscore.fetcher.ratelimit import GitHubRateLimiter
from devscore.fetcher.repos import RepoMetadataResolver
from devscore.scorecard.base import ScorecardServicePort
from devscore.scorecard.orchestrator import ScorecardOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppContext:
    """Process-wide state: everything here is shared across requests.

    Per-computation state (repository cache, classification memo) lives
    inside ``ScorecardOrchestrator.compute_scorecard`` and never here.
    """

    config: EngineConfig
    http_client: httpx.AsyncClient
    rate_limiter: GitHubRateLimiter
    ecosystems: EcosystemRegistry
    scorecards: ScorecardServicePort


@asynccontextmanager
async def open_app_context(config: EngineConfig | None = None) -> AsyncIterator[AppContext]:
    """Create shared adapters, yield them, and tear them down on exit."""
    config = config or load_config()
    token, source = resolve_github_token(config.github_token)
    headers = github_headers(token)
    logger.info("GitHub auth source: %s", source)

    ecosystems = EcosystemRegistry(config.ecosystems_path or None)
    rate_limiter = GitHubRateLimiter.from_config(config.fetch)

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(15.0, connect=5.0),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        transport=httpx.AsyncHTTPTransport(retries=2),
    ) as http_client:
        fetcher = GitHubActivityFetcher(
            http_client,
            rate_limiter,
            config.fetch,
            headers=headers,
            api_base_url=config.api_base_url,
        )

        def new_resolver() -> RepoMetadataResolver:
            return RepoMetadataResolver(
                http_client,
                rate_limiter,
                config.fetch,
                headers=headers,
                api_base_url=config.api_base_url,
            )

        scorecards = ScorecardOrchestrator(fetcher, new_resolver, ecosystems, config)

        watcher: asyncio.Task[None] | None = None
        if config.ecosystems_reload_seconds > 0 and config.ecosystems_path:
            watcher = asyncio.create_task(ecosystems.watch(config.ecosystems_reload_seconds))

        try:
            yield AppContext(
                config=config,
                http_client=http_client,
                rate_limiter=rate_limiter,
                ecosystems=ecosystems,
                scorecards=scorecards,
            )
        finally:
            if watcher is not None:
                watcher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watcher
