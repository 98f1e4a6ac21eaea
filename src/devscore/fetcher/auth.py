"""GitHub credential resolution and request headers."""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)

_API_VERSION = "2022-11-28"


def resolve_github_token(configured: str = "") -> tuple[str | None, str]:
    """Resolve auth token: configured/env value first, then `gh auth token` fallback.

    Returns:
        Tuple of (token or None, source) where source is ``config``,
        ``gh_cli`` or ``none``.
    """
    token = configured.strip()
    if token:
        return token, "config"

    gh_token = _resolve_gh_cli_token()
    if gh_token:
        logger.info("Using GitHub token from `gh auth token` fallback.")
        return gh_token, "gh_cli"

    logger.info(
        "No GitHub auth token found (checked GITHUB_TOKEN and `gh auth token`). "
        "Unauthenticated requests are limited to 60 per hour."
    )
    return None, "none"


def github_headers(token: str | None) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": _API_VERSION,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _resolve_gh_cli_token() -> str | None:
    """Try to read a token from local GitHub CLI auth context."""
    try:
        completed = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=2,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None

    if completed.returncode != 0:
        return None
    return completed.stdout.strip() or None
