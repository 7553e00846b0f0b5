"""Quantitative risk engine (VaR, CVaR, volatility, drawdown).

Implements the standard risk metrics over a symbol's rolling price window:
  - Volatility: population stddev of daily log returns, sqrt-time scaled
  - Historical VaR: |sorted_returns[floor((1 - c) * n)]|
  - Parametric VaR: max(0, -(mu - z * sigma * sqrt(h)))
  - CVaR: mean |return| of the tail strictly beyond historical VaR
  - Drawdown: running-peak forward pass

Every VaR/CVaR function needs at least 10 prices and returns zeros below
that. All functions are pure reads of the store passed in.
"""

import math
from collections.abc import Sequence

from riskdesk.analytics.stats import log_returns, mean, parametric_z, std_dev
from riskdesk.market_data.history import MarketHistory
from riskdesk.risk.models import (
    CVaRResult,
    PortfolioRiskMetrics,
    RiskMetrics,
    VaRResult,
    VolatilityMetrics,
)

MIN_PRICES_FOR_VAR = 10
DEFAULT_DIVERSIFICATION_FACTOR = 0.85

Position = tuple[str, float] | tuple[str, float, float]


# ---------------------------------------------------------------------------
# Series-level functions (operate on a plain price list)
# ---------------------------------------------------------------------------


def var_historical_from_prices(
    prices: Sequence[float],
    confidence_level: float = 0.95,
    position_value: float = 1.0,
) -> VaRResult:
    """Historical-simulation VaR from a price list."""
    if len(prices) < MIN_PRICES_FOR_VAR:
        return VaRResult(0.0, 0.0)

    sorted_returns = sorted(log_returns(prices))
    if not sorted_returns:
        return VaRResult(0.0, 0.0)

    index = math.floor((1 - confidence_level) * len(sorted_returns))
    index = min(max(0, index), len(sorted_returns) - 1)
    var_relative = abs(sorted_returns[index])

    return VaRResult(var_relative, var_relative * position_value)


def var_parametric_from_prices(
    prices: Sequence[float],
    confidence_level: float = 0.95,
    position_value: float = 1.0,
    horizon_days: float = 1,
) -> VaRResult:
    """Variance-covariance VaR from a price list."""
    if len(prices) < MIN_PRICES_FOR_VAR:
        return VaRResult(0.0, 0.0)

    returns = log_returns(prices)
    mu = mean(returns)
    sigma = std_dev(returns)
    z = parametric_z(confidence_level)

    var_relative = max(0.0, -(mu - z * sigma * math.sqrt(horizon_days)))
    return VaRResult(var_relative, var_relative * position_value)


def cvar_from_prices(
    prices: Sequence[float],
    confidence_level: float = 0.95,
    position_value: float = 1.0,
) -> CVaRResult:
    """Expected shortfall beyond the historical VaR threshold."""
    if len(prices) < MIN_PRICES_FOR_VAR:
        return CVaRResult(0.0, 0.0)

    var_relative = var_historical_from_prices(prices, confidence_level).var_relative
    threshold = -var_relative

    tail = [r for r in log_returns(prices) if r < threshold]
    if not tail:
        return CVaRResult(var_relative, var_relative * position_value)

    cvar_relative = abs(mean(tail))
    return CVaRResult(cvar_relative, cvar_relative * position_value)


def volatility_from_prices(prices: Sequence[float]) -> VolatilityMetrics:
    """Daily log-return volatility scaled to week, month and year."""
    if len(prices) < 2:
        return VolatilityMetrics(0.0, 0.0, 0.0, 0.0)

    daily = std_dev(log_returns(prices))
    return VolatilityMetrics(
        daily=daily,
        annualized=daily * math.sqrt(365),
        weekly=daily * math.sqrt(7),
        monthly=daily * math.sqrt(30),
    )


# ---------------------------------------------------------------------------
# Store-level functions
# ---------------------------------------------------------------------------


def var_historical(
    store: MarketHistory,
    symbol: str,
    confidence_level: float = 0.95,
    position_value: float = 1.0,
) -> VaRResult:
    """Historical VaR for a symbol's window.

    Args:
        store: Price history store.
        symbol: Asset symbol.
        confidence_level: e.g. 0.95.
        position_value: Position value in USD for the absolute figure.

    Returns:
        VaRResult; zeros with fewer than 10 prices.
    """
    return var_historical_from_prices(store.prices(symbol), confidence_level, position_value)


def var_parametric(
    store: MarketHistory,
    symbol: str,
    confidence_level: float = 0.95,
    position_value: float = 1.0,
    horizon_days: float = 1,
) -> VaRResult:
    """Parametric VaR for a symbol's window over ``horizon_days``."""
    return var_parametric_from_prices(
        store.prices(symbol), confidence_level, position_value, horizon_days
    )


def cvar(
    store: MarketHistory,
    symbol: str,
    confidence_level: float = 0.95,
    position_value: float = 1.0,
) -> CVaRResult:
    """CVaR (expected shortfall) for a symbol's window."""
    return cvar_from_prices(store.prices(symbol), confidence_level, position_value)


def volatility_metrics(store: MarketHistory, symbol: str) -> VolatilityMetrics:
    """Volatility metrics for a symbol's window."""
    return volatility_from_prices(store.prices(symbol))


def calculate_risk_metrics(
    store: MarketHistory,
    symbol: str,
    position_value: float = 0.0,
    relative_uncertainty: float = 0.0,
) -> RiskMetrics:
    """Compose the full RiskMetrics for one position.

    var95/var99 use the parametric method; cvar95/cvar99 the historical
    method. Drawdowns come from the store's statistics (0 when fewer than 2
    points). at_risk_amount is the absolute parametric VaR95.
    """
    prices = store.prices(symbol)
    stats = store.statistics(symbol)

    vol = volatility_from_prices(prices)
    var95 = var_parametric_from_prices(prices, 0.95, position_value)
    var99 = var_parametric_from_prices(prices, 0.99, position_value)
    cvar95 = cvar_from_prices(prices, 0.95, position_value)
    cvar99 = cvar_from_prices(prices, 0.99, position_value)

    return RiskMetrics(
        volatility=vol.annualized,
        volatility_daily=vol.daily,
        var95=var95.var_relative,
        var99=var99.var_relative,
        cvar95=cvar95.cvar_relative,
        cvar99=cvar99.cvar_relative,
        max_drawdown=stats.max_drawdown if stats else 0.0,
        current_drawdown=stats.current_drawdown if stats else 0.0,
        relative_uncertainty=relative_uncertainty,
        total_value=position_value,
        at_risk_amount=var95.var_absolute,
    )


def calculate_portfolio_risk(
    store: MarketHistory,
    positions: Sequence[Position],
    diversification_factor: float = DEFAULT_DIVERSIFICATION_FACTOR,
) -> PortfolioRiskMetrics:
    """Value-weighted portfolio risk with a flat diversification discount.

    No correlation matrix is used: the discount factor (0.85 by default) is
    applied whenever more than one position is held. Higher-order figures
    are fixed multiples of the weighted VaR95 (var99 1.5x, cvar95 1.2x,
    cvar99 1.8x, max_drawdown 2x without the discount).

    Args:
        store: Price history store.
        positions: (symbol, value) or (symbol, value, relative_uncertainty).
        diversification_factor: Discount applied to multi-position portfolios.

    Returns:
        PortfolioRiskMetrics; all zeros for an empty or zero-value portfolio.
    """
    total_value = sum(p[1] for p in positions)

    if not positions or total_value == 0:
        return PortfolioRiskMetrics(
            volatility=0.0,
            volatility_daily=0.0,
            var95=0.0,
            var99=0.0,
            cvar95=0.0,
            cvar99=0.0,
            max_drawdown=0.0,
            current_drawdown=0.0,
            relative_uncertainty=0.0,
            total_value=0.0,
            at_risk_amount=0.0,
            diversification=0.0,
        )

    weighted_var95 = 0.0
    weighted_vol = 0.0
    weighted_uncertainty = 0.0

    for position in positions:
        symbol, value = position[0], position[1]
        uncertainty = position[2] if len(position) > 2 else 0.0  # type: ignore[misc]
        weight = value / total_value
        metrics = calculate_risk_metrics(store, symbol, value, uncertainty)

        weighted_var95 += metrics.var95 * weight
        weighted_vol += metrics.volatility * weight
        weighted_uncertainty += metrics.relative_uncertainty * weight

    factor = diversification_factor if len(positions) > 1 else 1.0

    return PortfolioRiskMetrics(
        volatility=weighted_vol * factor,
        volatility_daily=weighted_vol * factor / math.sqrt(365),
        var95=weighted_var95 * factor,
        var99=weighted_var95 * 1.5 * factor,
        cvar95=weighted_var95 * 1.2 * factor,
        cvar99=weighted_var95 * 1.8 * factor,
        max_drawdown=weighted_var95 * 2,
        current_drawdown=0.0,
        relative_uncertainty=weighted_uncertainty,
        total_value=total_value,
        at_risk_amount=weighted_var95 * total_value * factor,
        diversification=factor,
    )


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _pct(value: float, places: int = 2) -> str:
    return f"{value * 100:.{places}f}%"


def _usd(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_risk_metrics(metrics: RiskMetrics) -> dict[str, str]:
    """Display strings for the headline risk figures."""
    return {
        "volatility": _pct(metrics.volatility),
        "var95": _pct(metrics.var95),
        "var99": _pct(metrics.var99),
        "cvar95": _pct(metrics.cvar95),
        "max_drawdown": _pct(metrics.max_drawdown),
        "at_risk_amount": _usd(metrics.at_risk_amount),
    }


def generate_risk_report(store: MarketHistory, symbol: str, position_value: float) -> str:
    """Human-readable risk assessment for one position."""
    metrics = calculate_risk_metrics(store, symbol, position_value)
    formatted = format_risk_metrics(metrics)

    lines = [
        "RISK ASSESSMENT REPORT",
        "======================",
        f"Asset: {symbol}",
        f"Position Value: ${position_value:,.2f}",
        "",
        "VOLATILITY METRICS",
        f"- Annualized Volatility: {formatted['volatility']}",
        f"- Daily Volatility: {_pct(metrics.volatility_daily, 3)}",
        "",
        "VALUE AT RISK (VaR)",
        f"- VaR 95%: {formatted['var95']} ({formatted['at_risk_amount']})",
        f"- VaR 99%: {formatted['var99']}",
        "",
        "EXPECTED SHORTFALL (CVaR)",
        f"- CVaR 95%: {formatted['cvar95']}",
        f"- CVaR 99%: {_pct(metrics.cvar99)}",
        "",
        "DRAWDOWN METRICS",
        f"- Maximum Drawdown: {formatted['max_drawdown']}",
        f"- Current Drawdown: {_pct(metrics.current_drawdown)}",
        "",
        "METHODOLOGY",
        "- VaR calculated using parametric method (variance-covariance)",
        "- CVaR is the expected loss beyond VaR threshold",
        "- Volatility is annualized standard deviation of log returns",
        "- All calculations use historical price data",
        "",
        "INTERPRETATION",
        f"There is a 5% probability that losses will exceed {formatted['var95']}",
        f"({_usd(metrics.var95 * position_value)}) over the next day.",
        f"In the worst 5% of cases, the average loss is expected to be {formatted['cvar95']}.",
    ]
    return "\n".join(lines)
