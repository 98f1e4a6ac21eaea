"""HTTP surface: ``GET /scorecard/{username}`` and ``GET /health``."""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from devscore import __version__
from devscore.context import AppContext, open_app_context
from devscore.errors import DevScoreError
from devscore.scorecard.envelope import (
    error_envelope,
    internal_error_envelope,
    now_iso,
    success_envelope,
)
from devscore.scorecard.orchestrator import resolve_window_days

logger = logging.getLogger(__name__)

ContextFactory = Callable[[], AbstractAsyncContextManager[AppContext]]


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_app_context(request: Request) -> AppContext:
    return request.app.state.ctx


def create_app(context_factory: ContextFactory = open_app_context) -> FastAPI:
    """Build the FastAPI app; ``context_factory`` is swapped out in tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        logger.info("devscore API starting up")
        async with context_factory() as ctx:
            app.state.ctx = ctx
            yield
        logger.info("devscore API shutting down")

    app = FastAPI(
        title="devscore",
        description="Contributor scorecards from public GitHub activity",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/scorecard/{username}")
    async def get_scorecard(
        username: str,
        window_days: str | None = None,
        ctx: AppContext = Depends(get_app_context),
    ) -> JSONResponse:
        days = resolve_window_days(window_days, ctx.config)
        try:
            scorecard = await ctx.scorecards.compute_scorecard(username, days)
        except DevScoreError as exc:
            logger.warning("Scorecard for '%s' failed (%s): %s", username, exc.code, exc)
            return JSONResponse(error_envelope(exc), status_code=exc.status_code)
        except Exception:
            logger.exception("Unexpected scorecard failure for '%s'", username)
            return JSONResponse(internal_error_envelope(), status_code=500)
        return JSONResponse(success_envelope(scorecard))

    @app.get("/health")
    async def health(ctx: AppContext = Depends(get_app_context)) -> dict[str, object]:
        snapshot = ctx.ecosystems.snapshot()
        return {
            "status": "healthy",
            "service": "devscore",
            "version": __version__,
            "timestamp": now_iso(),
            "ecosystems": snapshot.tags,
            "ecosystem_source": snapshot.source,
            "github_rate_limit": ctx.rate_limiter.status(),
        }

    return app


app = create_app()
