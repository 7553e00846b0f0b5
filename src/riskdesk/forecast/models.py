"""Forecast value objects."""

from dataclasses import dataclass, field
from enum import Enum


class ForecastModel(str, Enum):
    """Statistical forecasting models."""

    ROLLING_REGRESSION = "rolling_regression"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    MEAN_REVERSION = "mean_reversion"
    ENSEMBLE = "ensemble"


@dataclass(frozen=True)
class ForecastResult:
    """Point estimate with a confidence interval and model diagnostics.

    ``model_params`` is a display-only payload. Fields consumed by downstream
    logic (alpha, beta, theta, r_squared, rmse) are carried as typed
    attributes instead.

    Invariant: lower_bound <= expected_value <= upper_bound, except where the
    lower bound is floored at zero price.
    """

    expected_value: float
    lower_bound: float
    upper_bound: float
    error_margin: float  # half-width of the interval
    confidence_level: float
    model: ForecastModel
    input_data_points: int
    forecast_horizon: float  # days ahead
    model_params: dict[str, float] = field(default_factory=dict)
    r_squared: float | None = None
    rmse: float | None = None
    alpha: float | None = None
    beta: float | None = None
    theta: float | None = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "expected_value": self.expected_value,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "error_margin": self.error_margin,
            "confidence_level": self.confidence_level,
            "model": self.model.value,
            "model_params": dict(self.model_params),
            "input_data_points": self.input_data_points,
            "forecast_horizon": self.forecast_horizon,
            "r_squared": self.r_squared,
            "rmse": self.rmse,
            "alpha": self.alpha,
            "beta": self.beta,
            "theta": self.theta,
        }
