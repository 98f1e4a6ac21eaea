"""get_scorecard and list_ecosystems tools."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import Context

from devscore.errors import DevScoreError
from devscore.scorecard.envelope import (
    error_envelope,
    internal_error_envelope,
    success_envelope,
)
from devscore.scorecard.orchestrator import resolve_window_days
from devscore.tools._helpers import get_context

logger = logging.getLogger(__name__)


async def get_scorecard(
    username: str,
    ctx: Context,
    window_days: int = 180,
) -> dict[str, object]:
    """Score a GitHub user's public contributions over a trailing window.

    The score sums weighted commits, pull requests, reviews and issues, plus
    a capped bonus for review/merge actions on other people's work and a
    diminishing bonus for breadth across ecosystems. ``data.partial`` is
    true when activity had to be truncated.

    Args:
        username: GitHub login (e.g. "octocat").
        window_days: Lookback window in days (default 180, max 365).

    Returns:
        ``{"success": true, "data": <scorecard>, "generated_at": ...}`` or
        ``{"success": false, "error": <code>, "message": ...}``.
    """
    app = get_context(ctx)
    days = resolve_window_days(window_days, app.config)
    try:
        scorecard = await app.scorecards.compute_scorecard(username, days)
    except DevScoreError as exc:
        await ctx.error(f"Scorecard for {username} failed: {exc}")
        return error_envelope(exc)
    except Exception as exc:
        logger.exception("Unexpected scorecard failure for '%s'", username)
        await ctx.error(f"Unexpected error in get_scorecard: {type(exc).__name__}")
        return internal_error_envelope()
    return success_envelope(scorecard)


async def list_ecosystems(ctx: Context) -> list[dict[str, object]]:
    """List the ecosystems contributions are classified into."""
    app = get_context(ctx)
    return [
        {
            "tag": definition.tag,
            "description": definition.description,
            "strict": definition.strict,
        }
        for definition in app.ecosystems.snapshot().definitions
    ]
