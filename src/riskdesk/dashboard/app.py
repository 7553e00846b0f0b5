"""FastAPI dashboard application factory (JSON API only)."""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from riskdesk.config import AppSettings
from riskdesk.dashboard.routes import api
from riskdesk.decision.approval import DecisionRegistry
from riskdesk.exceptions import (
    DecisionAlreadyResolvedError,
    DecisionNotFoundError,
    UnsupportedTokenError,
)
from riskdesk.logging import get_logger
from riskdesk.market_data.history import MarketHistory

logger = get_logger(__name__)


async def _unsupported_token(request: Request, exc: UnsupportedTokenError) -> JSONResponse:
    return JSONResponse(content={"detail": str(exc)}, status_code=404)


async def _decision_not_found(request: Request, exc: DecisionNotFoundError) -> JSONResponse:
    return JSONResponse(content={"detail": str(exc)}, status_code=404)


async def _decision_resolved(request: Request, exc: DecisionAlreadyResolvedError) -> JSONResponse:
    logger.warning("decision_already_resolved", path=request.url.path)
    return JSONResponse(content={"detail": str(exc)}, status_code=409)


def create_dashboard_app(
    lifespan: Any = None,
    settings: AppSettings | None = None,
    store: MarketHistory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.
        settings: Application settings (defaults loaded from the environment).
        store: Price history store shared with the feed monitor.

    Returns:
        Configured FastAPI application with routes and error handlers.
    """
    settings = settings or AppSettings()

    app = FastAPI(
        title="Risk Desk",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store or MarketHistory(
        default_capacity=settings.history.default_capacity,
        extended_capacity=settings.history.extended_capacity,
    )
    app.state.decisions = DecisionRegistry(max_resolved=settings.decision.max_resolved_decisions)

    # Feed monitor is wired by main.py lifespan
    app.state.feed_monitor = None

    app.add_exception_handler(UnsupportedTokenError, _unsupported_token)
    app.add_exception_handler(DecisionNotFoundError, _decision_not_found)
    app.add_exception_handler(DecisionAlreadyResolvedError, _decision_resolved)

    app.include_router(api.router, prefix="/api")

    return app
