"""Process-wide GitHub rate limiting and bounded exponential backoff.

One ``GitHubRateLimiter`` is shared by every request the process makes to
GitHub, across concurrent scorecard computations. It combines a token
bucket (local pacing) with a quota gate driven by GitHub's
``X-RateLimit-*`` response headers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping

import httpx

from devscore.config import FetchConfig
from devscore.deadline import Deadline
from devscore.errors import RateLimitedError

logger = logging.getLogger(__name__)


class GitHubRateLimiter:
    """Async token bucket plus a quota gate closed while GitHub reports 0 remaining."""

    def __init__(
        self,
        requests_per_second: float = 10.0,
        burst: int = 10,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._rate = requests_per_second
        self._capacity = float(burst)
        self._tokens = float(burst)
        self._clock = clock
        self._wall_clock = wall_clock
        self._updated = clock()
        self._lock = asyncio.Lock()
        self._quota_reset_at = 0.0  # Unix timestamp; 0 means the gate is open
        self._remaining: int | None = None
        self._logged_exhausted = False

    @classmethod
    def from_config(cls, config: FetchConfig) -> GitHubRateLimiter:
        return cls(config.requests_per_second, config.burst)

    # ── Quota gate ───────────────────────────────────────────

    def observe(self, response: httpx.Response) -> None:
        """Record rate-limit headers from a GitHub response."""
        remaining = _header_int(response.headers, "X-RateLimit-Remaining")
        if remaining is None:
            return
        self._remaining = remaining
        if remaining > 0:
            self._quota_reset_at = 0.0
            self._logged_exhausted = False
            return

        reset_epoch = _header_int(response.headers, "X-RateLimit-Reset") or 0
        self._quota_reset_at = float(reset_epoch)
        if not self._logged_exhausted:
            logger.warning(
                "GitHub API quota exhausted; requests gated for %.0fs",
                self.quota_wait(),
            )
            self._logged_exhausted = True

    def quota_wait(self) -> float:
        """Seconds until the quota gate reopens (0 when open)."""
        return max(0.0, self._quota_reset_at - self._wall_clock())

    def status(self) -> dict[str, object]:
        wait = self.quota_wait()
        return {
            "remaining": self._remaining,
            "rate_limited": wait > 0,
            "reset_seconds": int(wait),
        }

    # ── Acquisition ──────────────────────────────────────────

    async def acquire(self, deadline: Deadline | None = None) -> None:
        """Wait for permission to send one request.

        Raises:
            RateLimitedError: If the quota gate stays closed past the deadline.
        """
        wait = self.quota_wait()
        if wait > 0:
            if deadline is not None and not deadline.allows(wait):
                raise RateLimitedError(
                    f"GitHub API quota exhausted; it resets in {wait:.0f}s, "
                    "beyond this request's time budget.",
                    reset_at=self._quota_reset_at,
                )
            logger.info("Waiting %.1fs for GitHub quota reset", wait)
            await asyncio.sleep(wait)

        async with self._lock:
            self._refill()
            if self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens -= 1.0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._updated = now


# ─── Response classification ──────────────────────────────────


def is_rate_limited(response: httpx.Response) -> bool:
    """Return True for primary or secondary GitHub rate-limit responses."""
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("X-RateLimit-Remaining") == "0":
        return True
    return "Retry-After" in response.headers


def backoff_delay(response: httpx.Response, attempt: int, config: FetchConfig) -> float:
    """Delay before retry ``attempt`` (0-based), honouring server hints.

    Uses the larger of ``base * 2**attempt`` and the ``Retry-After`` hint,
    capped at ``backoff_max_seconds``.
    """
    delay = config.backoff_base_seconds * (2**attempt)
    retry_after = _header_int(response.headers, "Retry-After")
    if retry_after is not None:
        delay = max(delay, float(retry_after))
    return min(delay, config.backoff_max_seconds)


async def get_with_backoff(
    http: httpx.AsyncClient,
    url: str,
    *,
    limiter: GitHubRateLimiter,
    config: FetchConfig,
    deadline: Deadline,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, object] | None = None,
) -> httpx.Response:
    """GET ``url`` through the shared limiter, retrying rate-limit responses.

    Non-rate-limit responses (including errors) are returned to the caller.

    Raises:
        RateLimitedError: After ``max_retries`` retries, or when the next
            backoff would not fit the deadline.
        ScorecardTimeoutError: If the deadline passes between attempts.
        httpx.HTTPError: On transport failures.
    """
    response: httpx.Response | None = None
    for attempt in range(config.max_retries + 1):
        deadline.check("GitHub request")
        await limiter.acquire(deadline)
        response = await http.get(url, headers=dict(headers or {}), params=dict(params or {}))
        limiter.observe(response)
        if not is_rate_limited(response):
            return response
        if attempt == config.max_retries:
            break

        delay = backoff_delay(response, attempt, config)
        if not deadline.allows(delay):
            raise RateLimitedError(
                "GitHub API rate limit hit and the retry wait exceeds this request's time budget."
            )
        logger.warning(
            "GitHub rate limited (status %d); retry %d/%d in %.1fs",
            response.status_code,
            attempt + 1,
            config.max_retries,
            delay,
        )
        await asyncio.sleep(delay)

    reset = _header_int(response.headers, "X-RateLimit-Reset") if response is not None else None
    raise RateLimitedError(
        f"GitHub API rate limit persisted after {config.max_retries} retries.",
        reset_at=float(reset) if reset else None,
    )


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
