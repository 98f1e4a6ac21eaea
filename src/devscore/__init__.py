"""devscore: contributor scorecards from public GitHub activity."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _distribution_version

_LOCAL_VERSION_FALLBACK = "0.0.0+local"


def _resolve_version() -> str:
    """Resolve package version from installed metadata with deterministic fallback."""
    try:
        return _distribution_version("devscore")
    except PackageNotFoundError:
        return _LOCAL_VERSION_FALLBACK


__version__ = _resolve_version()


def main() -> None:
    """Entry point for `devscore-mcp` (stdio MCP server)."""
    from devscore.server import mcp

    mcp.run(transport="stdio")


def serve() -> None:
    """Entry point for `devscore` (HTTP API under uvicorn)."""
    import os

    import uvicorn

    uvicorn.run(
        "devscore.http_app:app",
        host=os.environ.get("DEVSCORE_HOST", "127.0.0.1"),
        port=int(os.environ.get("DEVSCORE_PORT", "8000")),
    )
