"""Resolve repository metadata (topics, language, fork flag) for classification."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import httpx

from devscore.config import FetchConfig
from devscore.deadline import Deadline
from devscore.errors import DevScoreError
from devscore.fetcher.ratelimit import GitHubRateLimiter, get_with_backoff
from devscore.models import RepoRef

logger = logging.getLogger(__name__)


class RepoMetadataResolver:
    """Per-computation, memoized repository lookups on a bounded worker pool.

    Create one per scorecard computation and ``clear()`` it afterwards; the
    cache is never shared across requests. A repository referenced by many
    events is fetched once. Lookups run concurrently, at most
    ``repo_concurrency`` at a time, all paced by the shared rate limiter.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        limiter: GitHubRateLimiter,
        config: FetchConfig,
        *,
        headers: dict[str, str] | None = None,
        api_base_url: str = "https://api.github.com",
    ) -> None:
        self._http = http
        self._limiter = limiter
        self._config = config
        self._headers = headers or {}
        self._base_url = api_base_url.rstrip("/")
        self._cache: dict[str, RepoRef] = {}
        self.lookups = 0

    async def resolve_all(
        self,
        repos: Iterable[RepoRef],
        deadline: Deadline,
    ) -> dict[str, RepoRef]:
        """Hydrate every distinct repository, keyed by lowercase full name.

        Per-repository failures keep the stub. Rate-limit exhaustion and
        timeouts abort the whole batch; queued lookups are cancelled.
        """
        pending: dict[str, RepoRef] = {}
        for repo in repos:
            key = repo.full_name.lower()
            if key not in self._cache and key not in pending:
                pending[key] = repo

        if pending:
            semaphore = asyncio.Semaphore(self._config.repo_concurrency)

            async def worker(key: str, stub: RepoRef) -> None:
                async with semaphore:
                    deadline.check("repository lookup")
                    self._cache[key] = await self._fetch_one(stub, deadline)

            try:
                async with asyncio.TaskGroup() as tg:
                    for key, stub in pending.items():
                        tg.create_task(worker(key, stub))
            except ExceptionGroup as group:
                raise _first_domain_error(group) from None

        return dict(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    async def _fetch_one(self, stub: RepoRef, deadline: Deadline) -> RepoRef:
        url = f"{self._base_url}/repos/{stub.owner}/{stub.name}"
        self.lookups += 1
        try:
            response = await get_with_backoff(
                self._http,
                url,
                limiter=self._limiter,
                config=self._config,
                deadline=deadline,
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("Repository lookup for %s failed: %s", stub.full_name, exc)
            return stub

        if response.status_code != 200:
            logger.warning(
                "Repository lookup for %s returned status %d; classifying by name only",
                stub.full_name,
                response.status_code,
            )
            return stub

        try:
            data = response.json()
        except ValueError:
            logger.warning("Repository lookup for %s returned invalid JSON", stub.full_name)
            return stub
        if not isinstance(data, dict):
            return stub
        return parse_repo(stub, data)


def parse_repo(stub: RepoRef, data: dict) -> RepoRef:
    """Merge a ``GET /repos/{owner}/{name}`` payload into a stub."""
    topics = data.get("topics") or []
    language = data.get("language") or ""
    return RepoRef(
        owner=stub.owner,
        name=stub.name,
        topics=frozenset(str(t).lower() for t in topics if isinstance(t, str)),
        primary_language=language if isinstance(language, str) else "",
        is_fork=bool(data.get("fork", False)),
        stars=_count(data.get("stargazers_count")),
        forks=_count(data.get("forks_count")),
    )


def _count(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return max(0, value)
    return 0


def _first_domain_error(group: BaseExceptionGroup) -> BaseException:
    """Pick the exception to surface from a failed TaskGroup."""
    leaves = list(_iter_leaves(group))
    for exc in leaves:
        if isinstance(exc, DevScoreError):
            return exc
    return leaves[0] if leaves else group


def _iter_leaves(group: BaseExceptionGroup) -> Iterable[BaseException]:
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            yield from _iter_leaves(exc)
        else:
            yield exc
