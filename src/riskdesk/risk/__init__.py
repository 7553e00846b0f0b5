"""Risk metrics engine: volatility, VaR, CVaR, drawdown and portfolio aggregation."""

from riskdesk.risk.metrics import (
    calculate_portfolio_risk,
    calculate_risk_metrics,
    cvar,
    format_risk_metrics,
    generate_risk_report,
    var_historical,
    var_parametric,
    volatility_metrics,
)
from riskdesk.risk.models import (
    CVaRResult,
    PortfolioRiskMetrics,
    RiskMetrics,
    VaRResult,
    VolatilityMetrics,
)

__all__ = [
    "CVaRResult",
    "PortfolioRiskMetrics",
    "RiskMetrics",
    "VaRResult",
    "VolatilityMetrics",
    "calculate_portfolio_risk",
    "calculate_risk_metrics",
    "cvar",
    "format_risk_metrics",
    "generate_risk_report",
    "var_historical",
    "var_parametric",
    "volatility_metrics",
]
