"""Fetch a user's public activity from the GitHub events API.

Events are returned newest-first, so pagination stops at the first event
older than the window. A page cap and a fetch budget bound the scan; hitting
either ends the stream early with ``partial`` set rather than failing.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import AsyncIterator
from datetime import datetime

import httpx

from devscore.config import FetchConfig
from devscore.deadline import Deadline
from devscore.errors import GitHubAPIError, UserNotFoundError
from devscore.fetcher.ratelimit import GitHubRateLimiter, get_with_backoff
from devscore.models import EventKind, RawEvent, RepoRef, TimeWindow

logger = logging.getLogger(__name__)

# GitHub logins: alphanumerics and single hyphens, max 39 chars.
_USERNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")


PARTIAL_PAGE_CAP = "page_cap"
PARTIAL_FETCH_BUDGET = "fetch_budget"
PARTIAL_HISTORY_LIMIT = "upstream_history_limit"


def is_valid_username(username: str) -> bool:
    return bool(_USERNAME_RE.match(username))


def parse_timestamp(value: object) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp. Returns None on failure."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class EventStream:
    """Lazy, single-use stream of RawEvents for one user and window.

    Iterating a second time raises RuntimeError; call ``fetch`` again to
    re-issue the network calls. After iteration, ``partial`` tells whether
    the scan stopped early and ``partial_reason`` says why.
    """

    def __init__(
        self,
        fetcher: GitHubActivityFetcher,
        username: str,
        window: TimeWindow,
        deadline: Deadline,
    ) -> None:
        self._fetcher = fetcher
        self.username = username
        self.window = window
        self._deadline = deadline
        self._consumed = False
        self.partial = False
        self.partial_reason = ""
        self.pages_fetched = 0

    def __aiter__(self) -> AsyncIterator[RawEvent]:
        if self._consumed:
            raise RuntimeError("EventStream is single-use; call fetch() again to re-read activity.")
        self._consumed = True
        return self._iterate()

    def _mark_partial(self, reason: str) -> None:
        self.partial = True
        self.partial_reason = reason
        logger.warning(
            "Activity for '%s' truncated after %d page(s): %s",
            self.username,
            self.pages_fetched,
            reason,
        )

    async def _iterate(self) -> AsyncIterator[RawEvent]:
        config = self._fetcher.config
        started = time.monotonic()

        for page in range(1, config.max_pages + 1):
            if page > 1 and time.monotonic() - started >= config.fetch_budget_seconds:
                self._mark_partial(PARTIAL_FETCH_BUDGET)
                return
            self._deadline.check("event pagination")

            entries = await self._fetcher.fetch_page(self.username, page, self._deadline)
            if entries is None:
                self._mark_partial(PARTIAL_HISTORY_LIMIT)
                return
            self.pages_fetched += 1
            if not entries:
                return

            reached_older = False
            for entry in entries:
                ts = parse_timestamp(entry.get("created_at"))
                if ts is not None:
                    if ts > self.window.until:
                        continue
                    if ts < self.window.since:
                        reached_older = True
                        continue
                for event in expand_entry(entry, ts, self.username):
                    yield event

            if reached_older or len(entries) < config.per_page:
                return

        self._mark_partial(PARTIAL_PAGE_CAP)


class GitHubActivityFetcher:
    """Adapter for ActivityFetcherPort backed by the GitHub REST API."""

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
        self.config = config
        self._headers = headers or {}
        self._base_url = api_base_url.rstrip("/")

    def fetch(self, username: str, window: TimeWindow, deadline: Deadline) -> EventStream:
        return EventStream(self, username, window, deadline)

    async def fetch_page(self, username: str, page: int, deadline: Deadline) -> list[dict] | None:
        """Fetch one page of public events.

        Returns None when GitHub refuses to paginate further (HTTP 422).

        Raises:
            UserNotFoundError: On HTTP 404.
            RateLimitedError: When the retry ceiling is exceeded.
            GitHubAPIError: On any other failure.
        """
        url = f"{self._base_url}/users/{username}/events/public"
        try:
            response = await get_with_backoff(
                self._http,
                url,
                limiter=self._limiter,
                config=self.config,
                deadline=deadline,
                headers=self._headers,
                params={"per_page": self.config.per_page, "page": page},
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(
                f"Failed to reach GitHub while listing events for '{username}'."
            ) from exc

        if response.status_code == 404:
            raise UserNotFoundError(username)
        if response.status_code == 422:
            return None
        if response.status_code != 200:
            raise GitHubAPIError(
                f"GitHub events request for '{username}' failed "
                f"with status {response.status_code}.",
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise GitHubAPIError("GitHub returned an unreadable events page.") from exc
        if not isinstance(data, list):
            raise GitHubAPIError("GitHub returned an unexpected events payload.")
        return [entry for entry in data if isinstance(entry, dict)]


# ─── Event expansion ──────────────────────────────────────────


def repo_stub(entry: dict) -> RepoRef | None:
    """Build a RepoRef stub from an event's ``repo.name`` (``owner/name``)."""
    repo = entry.get("repo")
    full_name = repo.get("name") if isinstance(repo, dict) else None
    if not isinstance(full_name, str) or full_name.count("/") != 1:
        return None
    owner, name = full_name.split("/")
    if not owner or not name:
        return None
    return RepoRef(owner=owner, name=name)


def expand_entry(entry: dict, ts: datetime | None, username: str) -> list[RawEvent]:
    """Map one GitHub event to zero or more RawEvents.

    ``PushEvent`` expands to one commit per pushed commit. A pull request or
    issue counts once, when it is opened; a merged ``closed`` counts only when
    the actor merged someone else's pull request. Unsupported event types and
    non-contributing actions map to nothing.
    """
    event_type = entry.get("type")
    payload = entry.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    repository = repo_stub(entry)
    actor = entry.get("actor")
    actor_login = actor.get("login", username) if isinstance(actor, dict) else username
    base_meta: dict[str, object] = {"event_id": entry.get("id"), "actor": actor_login}

    if event_type == "PushEvent":
        count = _push_commit_count(payload)
        meta = {**base_meta, "ref": payload.get("ref")}
        return [RawEvent(EventKind.COMMIT, repository, ts, meta) for _ in range(count)]

    if event_type == "PullRequestEvent":
        action = payload.get("action")
        pr = payload.get("pull_request")
        pr = pr if isinstance(pr, dict) else {}
        merged = bool(pr.get("merged")) or bool(pr.get("merged_at"))
        author = _login(pr.get("user"))
        merged_by = _login(pr.get("merged_by"))
        if action == "closed":
            if not merged or not _merged_for_someone_else(actor_login, author, merged_by):
                return []
        elif action != "opened":
            return []
        meta = {
            **base_meta,
            "action": action,
            "merged": merged,
            "merged_by": merged_by,
            "author": author,
            "author_association": pr.get("author_association"),
        }
        return [RawEvent(EventKind.PULL_REQUEST, repository, ts, meta)]

    if event_type == "PullRequestReviewEvent":
        review = payload.get("review")
        review = review if isinstance(review, dict) else {}
        pr = payload.get("pull_request")
        pr = pr if isinstance(pr, dict) else {}
        meta = {
            **base_meta,
            "action": payload.get("action"),
            "review_state": review.get("state"),
            "author": _login(pr.get("user")),
            "author_association": review.get("author_association"),
        }
        return [RawEvent(EventKind.REVIEW, repository, ts, meta)]

    if event_type == "IssuesEvent":
        action = payload.get("action")
        if action != "opened":
            return []
        issue = payload.get("issue")
        issue = issue if isinstance(issue, dict) else {}
        meta = {
            **base_meta,
            "action": action,
            "author": _login(issue.get("user")),
            "author_association": issue.get("author_association"),
        }
        return [RawEvent(EventKind.ISSUE, repository, ts, meta)]

    return []


def _push_commit_count(payload: dict) -> int:
    commits = payload.get("commits")
    listed = len(commits) if isinstance(commits, list) else 0
    # The commits list is truncated at 20; the size fields hold the real count.
    for key in ("distinct_size", "size"):
        value = payload.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return max(listed, value)
    if listed:
        return listed
    # Payload without commit details still records one push.
    return 1


def _merged_for_someone_else(actor: object, author: str | None, merged_by: str | None) -> bool:
    if not isinstance(actor, str) or not author or not merged_by:
        return False
    return merged_by.lower() == actor.lower() and author.lower() != actor.lower()


def _login(user: object) -> str | None:
    if isinstance(user, dict):
        login = user.get("login")
        return login if isinstance(login, str) else None
    return None
