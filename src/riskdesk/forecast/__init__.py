"""Forecast engine: regression, Holt smoothing, mean reversion and ensemble."""

from riskdesk.forecast.engine import (
    combine_forecasts,
    forecast,
    forecast_ensemble,
    forecast_exponential_smoothing,
    forecast_mean_reversion,
    forecast_rolling_regression,
    format_forecast,
    model_formula,
)
from riskdesk.forecast.models import ForecastModel, ForecastResult

__all__ = [
    "ForecastModel",
    "ForecastResult",
    "combine_forecasts",
    "forecast",
    "forecast_ensemble",
    "forecast_exponential_smoothing",
    "forecast_mean_reversion",
    "forecast_rolling_regression",
    "format_forecast",
    "model_formula",
]
