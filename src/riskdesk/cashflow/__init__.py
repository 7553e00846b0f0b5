"""Cashflow forecast from dated cash events."""

from riskdesk.cashflow.forecast import (
    CashflowEvent,
    CashflowForecastResult,
    forecast_cashflow,
    to_daily_net_flows,
)

__all__ = [
    "CashflowEvent",
    "CashflowForecastResult",
    "forecast_cashflow",
    "to_daily_net_flows",
]
