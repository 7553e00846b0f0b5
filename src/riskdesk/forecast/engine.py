"""Statistical forecasting engine.

Three independent models plus an inverse-error-weighted ensemble:
  1. Rolling linear regression on (day offset, price) with a t-based
     prediction interval
  2. Holt's linear exponential smoothing with a residual-based interval
  3. Ornstein-Uhlenbeck style mean reversion fitted via AR(1) on differences

Every model needs a minimum history (10 points; 20 for mean reversion) and
returns None below it. Lower bounds are floored at zero price.

Each model has a ``*_from_series`` variant that takes plain sequences and a
store-level wrapper that reads the symbol's current window.
"""

import math
import sys
from collections.abc import Sequence

from riskdesk.analytics.stats import interval_z, mean, std_dev, t_value
from riskdesk.forecast.models import ForecastModel, ForecastResult
from riskdesk.logging import get_logger
from riskdesk.market_data.history import MarketHistory
from riskdesk.market_data.quotes import format_price

logger = get_logger(__name__)

MS_PER_DAY = 86_400_000
MIN_POINTS_REGRESSION = 10
MIN_POINTS_SMOOTHING = 10
MIN_POINTS_MEAN_REVERSION = 20
MIN_THETA = 0.01

MODEL_FORMULAS: dict[ForecastModel, str] = {
    ForecastModel.ROLLING_REGRESSION: (
        "P(t) = α + βt + ε, CI = P̂ ± t_(α/2) × SE × √(1 + 1/n + (t-t̄)²/Sxx)"
    ),
    ForecastModel.EXPONENTIAL_SMOOTHING: (
        "L_t = αY_t + (1-α)(L_{t-1}+T_{t-1}), T_t = β(L_t-L_{t-1}) + (1-β)T_{t-1}"
    ),
    ForecastModel.MEAN_REVERSION: "dX_t = θ(μ-X_t)dt + σdW_t, E[X_{t+h}] = μ + (X_t-μ)e^(-θh)",
    ForecastModel.ENSEMBLE: "Weighted average of component models, weights ∝ 1/RMSE²",
}


# ---------------------------------------------------------------------------
# Rolling regression
# ---------------------------------------------------------------------------


def regression_from_series(
    prices: Sequence[float],
    timestamps: Sequence[int],
    horizon: float = 7,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """OLS trend line on (fractional day offset, price) pairs.

    Args:
        prices: Chronological prices.
        timestamps: Millisecond timestamps aligned with ``prices``.
        horizon: Days past the last observation to forecast.
        confidence_level: Interval confidence (t-table, normal for df > 30).

    Returns:
        ForecastResult, or None with fewer than 10 points.
    """
    n = len(prices)
    if n < MIN_POINTS_REGRESSION:
        logger.debug("forecast_insufficient_data", model="rolling_regression", points=n)
        return None

    start = timestamps[0]
    xs = [(t - start) / MS_PER_DAY for t in timestamps]

    x_mean = mean(xs)
    y_mean = mean(prices)
    sxx = sum((x - x_mean) ** 2 for x in xs)
    sxy = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, prices))

    if sxx == 0:
        slope = 0.0
        intercept = y_mean
    else:
        slope = sxy / sxx
        intercept = y_mean - slope * x_mean

    ss_total = sum((y - y_mean) ** 2 for y in prices)
    ss_residual = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, prices))
    r_squared = 1.0 if ss_total == 0 else 1 - ss_residual / ss_total
    rmse = math.sqrt(ss_residual / n)

    forecast_x = xs[-1] + horizon
    expected = intercept + slope * forecast_x

    leverage = 0.0 if sxx == 0 else (forecast_x - x_mean) ** 2 / sxx
    se_forecast = rmse * math.sqrt(1 + 1 / n + leverage)
    margin = t_value(confidence_level, n - 2) * se_forecast

    return ForecastResult(
        expected_value=expected,
        lower_bound=max(0.0, expected - margin),
        upper_bound=expected + margin,
        error_margin=margin,
        confidence_level=confidence_level,
        model=ForecastModel.ROLLING_REGRESSION,
        input_data_points=n,
        forecast_horizon=horizon,
        model_params={
            "alpha": intercept,
            "beta": slope,
            "r_squared": r_squared,
            "rmse": rmse,
        },
        r_squared=r_squared,
        rmse=rmse,
        alpha=intercept,
        beta=slope,
    )


def forecast_rolling_regression(
    store: MarketHistory,
    symbol: str,
    horizon: float = 7,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Rolling regression forecast over a symbol's window."""
    return regression_from_series(
        store.prices(symbol), store.timestamps(symbol), horizon, confidence_level
    )


# ---------------------------------------------------------------------------
# Exponential smoothing (Holt)
# ---------------------------------------------------------------------------


def _holt_step(
    price: float, level: float, trend: float, alpha: float, beta: float
) -> tuple[float, float]:
    new_level = alpha * price + (1 - alpha) * (level + trend)
    new_trend = beta * (new_level - level) + (1 - beta) * trend
    return new_level, new_trend


def smoothing_from_series(
    prices: Sequence[float],
    horizon: float = 7,
    alpha: float = 0.3,
    beta: float = 0.1,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Holt's linear method seeded with level=p0, trend=p1-p0.

    The interval half-width is ``z * std(one-step residuals) * sqrt(horizon)``.
    """
    n = len(prices)
    if n < MIN_POINTS_SMOOTHING:
        logger.debug("forecast_insufficient_data", model="exponential_smoothing", points=n)
        return None

    level = prices[0]
    trend = prices[1] - prices[0]
    for price in prices[1:]:
        level, trend = _holt_step(price, level, trend, alpha, beta)

    expected = level + horizon * trend

    # Second pass: one-step-ahead residuals from the same recursion
    residuals: list[float] = []
    tmp_level = prices[0]
    tmp_trend = prices[1] - prices[0]
    for price in prices[1:]:
        residuals.append(price - (tmp_level + tmp_trend))
        tmp_level, tmp_trend = _holt_step(price, tmp_level, tmp_trend, alpha, beta)

    residual_std = std_dev(residuals)
    margin = interval_z(confidence_level) * residual_std * math.sqrt(horizon)
    rmse = math.sqrt(mean([r * r for r in residuals]))

    return ForecastResult(
        expected_value=expected,
        lower_bound=max(0.0, expected - margin),
        upper_bound=expected + margin,
        error_margin=margin,
        confidence_level=confidence_level,
        model=ForecastModel.EXPONENTIAL_SMOOTHING,
        input_data_points=n,
        forecast_horizon=horizon,
        model_params={
            "alpha": alpha,
            "beta": beta,
            "final_level": level,
            "final_trend": trend,
            "residual_std_dev": residual_std,
        },
        rmse=rmse,
        alpha=alpha,
        beta=beta,
    )


def forecast_exponential_smoothing(
    store: MarketHistory,
    symbol: str,
    horizon: float = 7,
    alpha: float = 0.3,
    beta: float = 0.1,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Holt exponential smoothing forecast over a symbol's window."""
    return smoothing_from_series(store.prices(symbol), horizon, alpha, beta, confidence_level)


# ---------------------------------------------------------------------------
# Mean reversion
# ---------------------------------------------------------------------------


def mean_reversion_from_series(
    prices: Sequence[float],
    horizon: float = 7,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Ornstein-Uhlenbeck style reversion toward the sample mean.

    theta comes from the AR(1) coefficient phi of first differences,
    ``theta = max(0.01, -ln|phi|)``. A zero phi is treated as the smallest
    positive float, giving a very fast (but finite) reversion.
    """
    n = len(prices)
    if n < MIN_POINTS_MEAN_REVERSION:
        logger.debug("forecast_insufficient_data", model="mean_reversion", points=n)
        return None

    long_term_mean = mean(prices)
    diffs = [curr - prev for prev, curr in zip(prices, prices[1:])]

    xs = diffs[:-1]
    ys = diffs[1:]
    x_mean = mean(xs)
    y_mean = mean(ys)
    numerator = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    denominator = sum((x - x_mean) ** 2 for x in xs)
    phi = numerator / denominator if denominator != 0 else 0.0

    theta = max(MIN_THETA, -math.log(max(abs(phi), sys.float_info.min)))

    sigma = std_dev(diffs)
    deviation = prices[-1] - long_term_mean
    expected = long_term_mean + deviation * math.exp(-theta * horizon)

    variance = (sigma * sigma) / (2 * theta) * (1 - math.exp(-2 * theta * horizon))
    margin = interval_z(confidence_level) * math.sqrt(variance)

    return ForecastResult(
        expected_value=expected,
        lower_bound=max(0.0, expected - margin),
        upper_bound=expected + margin,
        error_margin=margin,
        confidence_level=confidence_level,
        model=ForecastModel.MEAN_REVERSION,
        input_data_points=n,
        forecast_horizon=horizon,
        model_params={
            "long_term_mean": long_term_mean,
            "theta": theta,
            "sigma": sigma,
            "current_deviation": deviation,
            "half_life": math.log(2) / theta,
        },
        rmse=sigma,
        theta=theta,
    )


def forecast_mean_reversion(
    store: MarketHistory,
    symbol: str,
    horizon: float = 7,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Mean reversion forecast over a symbol's window."""
    return mean_reversion_from_series(store.prices(symbol), horizon, confidence_level)


# ---------------------------------------------------------------------------
# Ensemble
# ---------------------------------------------------------------------------


def combine_forecasts(
    forecasts: Sequence[ForecastResult],
    horizon: float,
    confidence_level: float,
) -> ForecastResult | None:
    """Inverse-squared-RMSE weighted point estimate over the union interval.

    A missing or zero RMSE counts as 1. With a single forecast it is returned
    unchanged.
    """
    if not forecasts:
        return None
    if len(forecasts) == 1:
        return forecasts[0]

    rmses = [f.rmse or 1.0 for f in forecasts]
    raw_weights = [1 / (r * r) for r in rmses]
    total_weight = sum(raw_weights)
    weights = [w / total_weight for w in raw_weights]

    expected = sum(f.expected_value * w for f, w in zip(forecasts, weights))
    lower = min(f.lower_bound for f in forecasts)
    upper = max(f.upper_bound for f in forecasts)
    ensemble_rmse = sum(r * w for r, w in zip(rmses, weights))

    params: dict[str, float] = {"models_used": float(len(forecasts))}
    for f, w in zip(forecasts, weights):
        params[f"weight_{f.model.value}"] = w

    return ForecastResult(
        expected_value=expected,
        lower_bound=lower,
        upper_bound=upper,
        error_margin=(upper - lower) / 2,
        confidence_level=confidence_level,
        model=ForecastModel.ENSEMBLE,
        input_data_points=max(f.input_data_points for f in forecasts),
        forecast_horizon=horizon,
        model_params=params,
        rmse=ensemble_rmse,
    )


def ensemble_from_series(
    prices: Sequence[float],
    timestamps: Sequence[int],
    horizon: float = 7,
    confidence_level: float = 0.95,
    alpha: float = 0.3,
    beta: float = 0.1,
) -> ForecastResult | None:
    """Run every model that has enough data and combine the survivors."""
    candidates = [
        regression_from_series(prices, timestamps, horizon, confidence_level),
        smoothing_from_series(prices, horizon, alpha, beta, confidence_level),
        mean_reversion_from_series(prices, horizon, confidence_level),
    ]
    return combine_forecasts(
        [f for f in candidates if f is not None], horizon, confidence_level
    )


def forecast_ensemble(
    store: MarketHistory,
    symbol: str,
    horizon: float = 7,
    confidence_level: float = 0.95,
) -> ForecastResult | None:
    """Ensemble forecast over a symbol's window."""
    return ensemble_from_series(
        store.prices(symbol), store.timestamps(symbol), horizon, confidence_level
    )


# ---------------------------------------------------------------------------
# Dispatch and formatting
# ---------------------------------------------------------------------------


def forecast(
    store: MarketHistory,
    symbol: str,
    model: ForecastModel = ForecastModel.ENSEMBLE,
    horizon: float = 7,
    confidence_level: float = 0.95,
    alpha: float = 0.3,
    beta: float = 0.1,
) -> ForecastResult | None:
    """Run the requested model for ``symbol``."""
    model = ForecastModel(model)
    if model is ForecastModel.ROLLING_REGRESSION:
        return forecast_rolling_regression(store, symbol, horizon, confidence_level)
    if model is ForecastModel.EXPONENTIAL_SMOOTHING:
        return forecast_exponential_smoothing(
            store, symbol, horizon, alpha, beta, confidence_level
        )
    if model is ForecastModel.MEAN_REVERSION:
        return forecast_mean_reversion(store, symbol, horizon, confidence_level)
    return ensemble_from_series(
        store.prices(symbol), store.timestamps(symbol), horizon, confidence_level, alpha, beta
    )


def model_formula(model: ForecastModel | str) -> str:
    """Documented formula for a model, used in risk certificates."""
    try:
        return MODEL_FORMULAS[ForecastModel(model)]
    except ValueError:
        return "Statistical model with documented parameters"


def format_forecast(result: ForecastResult) -> dict[str, str]:
    """Display strings for a forecast."""
    return {
        "expected": format_price(result.expected_value),
        "range": f"{format_price(result.lower_bound)} - {format_price(result.upper_bound)}",
        "confidence": f"{result.confidence_level * 100:.0f}%",
        "model": result.model.value,
    }
