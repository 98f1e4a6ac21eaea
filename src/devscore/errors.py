"""Exception hierarchy for devscore.

All exceptions inherit from DevScoreError (single catch point).
Terminal errors carry a stable ``code`` and the HTTP status the public
boundary maps them to. Messages never include raw upstream bodies.
"""

from __future__ import annotations


class DevScoreError(Exception):
    """Base exception for all devscore errors."""

    code = "scorecard_failed"
    status_code = 500


class ConfigError(DevScoreError):
    """Invalid engine configuration or ecosystem definition file."""


class UserNotFoundError(DevScoreError):
    """The code-hosting API reports that the user does not exist."""

    code = "user_not_found"
    status_code = 404

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"GitHub user '{username}' was not found.")


class RateLimitedError(DevScoreError):
    """The API quota is exhausted and the retry ceiling was reached."""

    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str, reset_at: float | None = None) -> None:
        self.reset_at = reset_at  # Unix timestamp when the quota resets, if known
        super().__init__(message)


class ScorecardTimeoutError(DevScoreError):
    """The computation exceeded its overall deadline."""

    code = "timeout"
    status_code = 504


class GitHubAPIError(DevScoreError):
    """Unexpected non-rate-limit failure from the GitHub API."""

    code = "upstream_error"
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(message)


class MalformedEventError(DevScoreError):
    """A single raw event lacks a repository or timestamp. Never propagated."""
