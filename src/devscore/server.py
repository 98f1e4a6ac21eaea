"""MCP server exposing contributor scorecards as tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from devscore.context import AppContext, open_app_context
from devscore.tools.scorecard import get_scorecard, list_ecosystems


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage shared adapter lifecycle for the MCP transport."""
    async with open_app_context() as ctx:
        yield ctx


mcp = FastMCP(
    "devscore",
    instructions=(
        "devscore scores a GitHub user's public open-source contributions.\n\n"
        "- **get_scorecard** -- total score, per-kind breakdown, maintainer and "
        "cross-ecosystem bonuses, tier, and the repositories behind the score. "
        "Mention when the result is partial.\n"
        "- **list_ecosystems** -- the ecosystems contributions are grouped into."
    ),
    lifespan=app_lifespan,
)

mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(get_scorecard)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_ecosystems)
