"""Public response envelopes shared by the HTTP and MCP surfaces."""

from __future__ import annotations

import time
from dataclasses import asdict

from devscore.errors import DevScoreError
from devscore.models import Scorecard


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def success_envelope(scorecard: Scorecard) -> dict[str, object]:
    return {
        "success": True,
        "data": asdict(scorecard),
        "generated_at": now_iso(),
    }


def error_envelope(exc: DevScoreError) -> dict[str, object]:
    """Stable error code plus our own message; upstream bodies never appear here."""
    return {
        "success": False,
        "error": exc.code,
        "message": str(exc),
    }


def internal_error_envelope() -> dict[str, object]:
    """Envelope for unexpected failures; the exception detail stays in the logs."""
    return {
        "success": False,
        "error": "internal_error",
        "message": "Failed to generate scorecard.",
    }
