"""JSON API endpoints for prices, history, risk, forecasts, allocation and decisions."""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from riskdesk.allocation.optimizer import AllocationInputs, optimize_allocation
from riskdesk.cashflow.forecast import CashflowEvent, forecast_cashflow
from riskdesk.config import AppSettings
from riskdesk.decision.engine import (
    NO_LIVE_QUOTE,
    decide,
    format_risk_certificate,
    generate_risk_certificate,
)
from riskdesk.decision.policy import PolicyContext, apply_policies, create_policy_set
from riskdesk.forecast.engine import forecast as run_forecast
from riskdesk.forecast.models import ForecastModel
from riskdesk.logging import decision_context, get_logger
from riskdesk.market_data.history import MarketHistory
from riskdesk.market_data.quotes import PriceQuote
from riskdesk.market_data.tokens import SUPPORTED_TOKENS, get_token_config
from riskdesk.risk.metrics import (
    MIN_PRICES_FOR_VAR,
    calculate_portfolio_risk,
    calculate_risk_metrics,
)

log = get_logger(__name__)

router = APIRouter()

VOLATILE_BUCKET_SYMBOL = "SOL"


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CashflowEventBody(BaseModel):
    timestamp: int
    amount: float
    category: str | None = None
    description: str | None = None


class CashflowRequest(BaseModel):
    starting_balance: float
    events: list[CashflowEventBody] = Field(default_factory=list)
    horizon_days: int = Field(default=7, ge=1)
    lookback_days: int = Field(default=30, ge=1)
    confidence_level: float = Field(default=0.95, gt=0, lt=1)
    now_ms: int | None = None


class AllocationRequest(BaseModel):
    total_usd: float = Field(ge=0)
    current_relative_uncertainty: float | None = None
    stable_earn_apy: float | None = None
    sol_staking_apy: float | None = None
    max_var95_loss_pct: float | None = None
    max_uncertainty: float | None = None
    horizon_days: int | None = None
    step_pct: int | None = None


class PositionBody(BaseModel):
    symbol: str
    value: float = Field(ge=0)
    relative_uncertainty: float = Field(default=0.0, ge=0)


class PortfolioRequest(BaseModel):
    positions: list[PositionBody]


class DecisionRequest(BaseModel):
    position_value: float = Field(ge=0)
    model: ForecastModel = ForecastModel.ENSEMBLE
    horizon_days: float | None = Field(default=None, gt=0)
    confidence_level: float | None = Field(default=None, gt=0, lt=1)


class VerificationRequest(BaseModel):
    reasoning: str | None = None
    verified_by: str = "user"


class PolicyRequest(BaseModel):
    amount: float
    token: str
    uncertainty: float = 0.0
    daily_spent: float = 0.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _insufficient_data() -> JSONResponse:
    return JSONResponse(content={"detail": "insufficient_data"}, status_code=422)


def _require_symbol(symbol: str) -> str:
    """Normalize and validate a symbol; raises UnsupportedTokenError (404)."""
    return get_token_config(symbol.upper()).symbol


def _live_quote(request: Request, symbol: str) -> PriceQuote | None:
    monitor = request.app.state.feed_monitor
    if monitor is None:
        return None
    return monitor.get_quote(symbol)


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


@router.get("/tokens")
async def get_tokens() -> JSONResponse:
    """Supported tokens with their oracle feed ids."""
    return JSONResponse(content=[token.to_dict() for token in SUPPORTED_TOKENS])


@router.get("/prices")
async def get_prices(request: Request) -> JSONResponse:
    """Latest cached quote per symbol."""
    monitor = request.app.state.feed_monitor
    if monitor is None:
        return JSONResponse(content={"quotes": [], "last_updated": None})
    return JSONResponse(content={
        "quotes": [q.to_dict() for q in monitor.get_all_quotes()],
        "last_updated": monitor.last_updated,
    })


@router.get("/history/{symbol}")
async def get_history(request: Request, symbol: str) -> JSONResponse:
    """Current rolling window for a symbol."""
    symbol = _require_symbol(symbol)
    store: MarketHistory = request.app.state.store
    series = store.series(symbol)
    if series is None:
        return JSONResponse(content={"symbol": symbol, "capacity": None, "points": []})
    return JSONResponse(content=series.to_dict())


@router.get("/history/{symbol}/statistics")
async def get_history_statistics(
    request: Request,
    symbol: str,
    window: int = Query(default=20, ge=1),
) -> JSONResponse:
    """Summary statistics plus a rolling mean/stddev series."""
    symbol = _require_symbol(symbol)
    store: MarketHistory = request.app.state.store
    stats = store.statistics(symbol)
    if stats is None:
        return _insufficient_data()

    rolling = store.rolling_statistics(symbol, window)
    return JSONResponse(content={
        "statistics": stats.to_dict(),
        "rolling": [
            {"timestamp": r.timestamp, "mean": r.mean, "std_dev": r.std_dev} for r in rolling
        ],
    })


# ---------------------------------------------------------------------------
# Risk and forecasts
# ---------------------------------------------------------------------------


@router.get("/risk/{symbol}")
async def get_risk(
    request: Request,
    symbol: str,
    position_value: float = Query(default=0.0, ge=0),
    relative_uncertainty: float | None = Query(default=None, ge=0),
) -> JSONResponse:
    """Risk metrics for a position in ``symbol``.

    Relative uncertainty defaults to the live quote's reading (0 without one).
    """
    symbol = _require_symbol(symbol)
    store: MarketHistory = request.app.state.store
    if len(store.prices(symbol)) < MIN_PRICES_FOR_VAR:
        return _insufficient_data()

    if relative_uncertainty is None:
        quote = _live_quote(request, symbol)
        relative_uncertainty = quote.relative_uncertainty if quote is not None else 0.0

    metrics = calculate_risk_metrics(store, symbol, position_value, relative_uncertainty)
    return JSONResponse(content=metrics.to_dict())


@router.post("/risk/portfolio")
async def post_portfolio_risk(request: Request, body: PortfolioRequest) -> JSONResponse:
    """Value-weighted risk across positions with the configured diversification factor."""
    settings: AppSettings = request.app.state.settings
    positions = [
        (_require_symbol(p.symbol), p.value, p.relative_uncertainty) for p in body.positions
    ]
    metrics = calculate_portfolio_risk(
        request.app.state.store, positions, settings.risk.diversification_factor
    )
    return JSONResponse(content=metrics.to_dict())


@router.get("/forecast/{symbol}")
async def get_forecast(
    request: Request,
    symbol: str,
    model: ForecastModel = ForecastModel.ENSEMBLE,
    horizon: float | None = Query(default=None, gt=0),
    confidence: float | None = Query(default=None, gt=0, lt=1),
) -> JSONResponse:
    """Forecast ``horizon`` days ahead with the requested model."""
    symbol = _require_symbol(symbol)
    settings: AppSettings = request.app.state.settings
    result = run_forecast(
        request.app.state.store,
        symbol,
        model,
        horizon=horizon or settings.forecast.horizon_days,
        confidence_level=confidence or settings.forecast.confidence_level,
        alpha=settings.forecast.smoothing_alpha,
        beta=settings.forecast.smoothing_beta,
    )
    if result is None:
        return _insufficient_data()
    return JSONResponse(content=result.to_dict())


@router.post("/cashflow/forecast")
async def post_cashflow_forecast(body: CashflowRequest) -> JSONResponse:
    """Project a wallet balance from dated cash events."""
    events = [
        CashflowEvent(e.timestamp, e.amount, e.category, e.description) for e in body.events
    ]
    result = forecast_cashflow(
        body.starting_balance,
        events,
        horizon_days=body.horizon_days,
        lookback_days=body.lookback_days,
        confidence_level=body.confidence_level,
        now_ms=body.now_ms,
    )
    if result is None:
        return _insufficient_data()
    return JSONResponse(content=result.to_dict())


@router.post("/allocation")
async def post_allocation(request: Request, body: AllocationRequest) -> JSONResponse:
    """Three-bucket allocation using the volatile bucket's current risk."""
    settings: AppSettings = request.app.state.settings
    store: MarketHistory = request.app.state.store

    uncertainty = body.current_relative_uncertainty
    if uncertainty is None:
        quote = _live_quote(request, VOLATILE_BUCKET_SYMBOL)
        uncertainty = quote.relative_uncertainty if quote is not None else 0.0

    sol_risk = calculate_risk_metrics(store, VOLATILE_BUCKET_SYMBOL, body.total_usd, uncertainty)
    overrides = body.model_dump(
        exclude_none=True, exclude={"total_usd", "current_relative_uncertainty"}
    )
    allocation_settings = settings.allocation.model_copy(update=overrides)

    inputs = AllocationInputs.from_settings(
        allocation_settings, body.total_usd, sol_risk, uncertainty
    )
    plan = optimize_allocation(inputs)
    log.info("allocation_requested", total_usd=body.total_usd, uncertainty=uncertainty)
    return JSONResponse(content=plan.to_dict())


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


@router.post("/decisions/{symbol}")
async def post_decision(request: Request, symbol: str, body: DecisionRequest) -> JSONResponse:
    """Generate a recommendation and certificate, pending approval."""
    symbol = _require_symbol(symbol)
    settings: AppSettings = request.app.state.settings
    store: MarketHistory = request.app.state.store
    horizon = (
        body.horizon_days if body.horizon_days is not None else settings.forecast.horizon_days
    )
    confidence_level = (
        body.confidence_level
        if body.confidence_level is not None
        else settings.forecast.confidence_level
    )

    forecast = run_forecast(
        store,
        symbol,
        body.model,
        horizon=horizon,
        confidence_level=confidence_level,
        alpha=settings.forecast.smoothing_alpha,
        beta=settings.forecast.smoothing_beta,
    )
    if forecast is None:
        return _insufficient_data()

    quote = _live_quote(request, symbol)
    price_quality = quote if quote is not None else NO_LIVE_QUOTE
    prices = store.prices(symbol)
    current_price = quote.price if quote is not None else prices[-1]

    risk = calculate_risk_metrics(
        store, symbol, body.position_value, price_quality.relative_uncertainty
    )
    with decision_context(symbol=symbol):
        recommendation = decide(
            forecast,
            risk,
            body.position_value,
            price_quality,
            symbol=symbol,
            stablecoin=settings.decision.stablecoin,
        )
        certificate = generate_risk_certificate(
            symbol,
            forecast,
            risk,
            body.position_value,
            recommendation,
            current_price=current_price,
            version=settings.decision.certificate_version,
        )
        workflow = request.app.state.decisions.register(recommendation, certificate)
    return JSONResponse(content=workflow.to_dict(), status_code=201)


@router.get("/decisions/{decision_id}")
async def get_decision(request: Request, decision_id: str) -> JSONResponse:
    """Decision state with the rendered certificate text."""
    workflow = request.app.state.decisions.get(decision_id)
    return JSONResponse(content={
        **workflow.to_dict(),
        "certificate_text": format_risk_certificate(workflow.certificate),
    })


@router.post("/decisions/{decision_id}/approve")
async def approve_decision(
    request: Request, decision_id: str, body: VerificationRequest | None = None
) -> JSONResponse:
    """Approve a pending decision (409 when already resolved)."""
    body = body or VerificationRequest()
    workflow = request.app.state.decisions.get(decision_id)
    with decision_context(decision_id=decision_id):
        workflow.approve(body.reasoning, verified_by=body.verified_by)
    return JSONResponse(content=workflow.to_dict())


@router.post("/decisions/{decision_id}/reject")
async def reject_decision(
    request: Request, decision_id: str, body: VerificationRequest | None = None
) -> JSONResponse:
    """Reject a pending decision (409 when already resolved)."""
    body = body or VerificationRequest()
    workflow = request.app.state.decisions.get(decision_id)
    with decision_context(decision_id=decision_id):
        workflow.reject(body.reasoning, verified_by=body.verified_by)
    return JSONResponse(content=workflow.to_dict())


@router.post("/policy/evaluate")
async def evaluate_policy(request: Request, body: PolicyRequest) -> JSONResponse:
    """Apply the spend limits and default policy rules to a proposed transaction."""
    settings: AppSettings = request.app.state.settings
    context = PolicyContext(
        amount=body.amount,
        token=body.token.upper(),
        uncertainty=body.uncertainty,
        daily_spent=body.daily_spent,
    )
    action = apply_policies(create_policy_set(settings.policy), context)
    return JSONResponse(content=action.to_dict())
