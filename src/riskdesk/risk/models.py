"""Risk metric value objects.

All percentages are decimal fractions (0.05 = 5%). Objects are recomputed on
demand and never mutated.
"""

import math
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class VaRResult:
    """Value at Risk as a loss fraction and as a USD amount."""

    var_relative: float
    var_absolute: float


@dataclass(frozen=True)
class CVaRResult:
    """Expected shortfall as a loss fraction and as a USD amount."""

    cvar_relative: float
    cvar_absolute: float


@dataclass(frozen=True)
class VolatilityMetrics:
    """Log-return volatility at several horizons (sqrt-time scaling of daily)."""

    daily: float
    annualized: float
    weekly: float
    monthly: float


@dataclass(frozen=True)
class RiskMetrics:
    """Complete risk metrics for a single position."""

    volatility: float  # annualized stddev of log returns
    volatility_daily: float
    var95: float
    var99: float
    cvar95: float
    cvar99: float
    max_drawdown: float
    current_drawdown: float
    relative_uncertainty: float  # externally supplied (oracle conf / price)
    total_value: float
    at_risk_amount: float  # var95 as a USD amount

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict (non-finite values become None)."""
        return {
            key: None if isinstance(value, float) and not math.isfinite(value) else value
            for key, value in asdict(self).items()
        }


@dataclass(frozen=True)
class PortfolioRiskMetrics(RiskMetrics):
    """Value-weighted portfolio metrics with the diversification factor applied."""

    diversification: float = 1.0


ZERO_RISK = RiskMetrics(
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
)
