"""Shared test fixtures for riskdesk."""

import math
from collections.abc import Callable, Sequence

import pytest

from riskdesk.config import AppSettings, HistorySettings
from riskdesk.forecast.models import ForecastModel, ForecastResult
from riskdesk.market_data.history import MarketHistory
from riskdesk.risk.models import RiskMetrics

DAY_MS = 86_400_000
BASE_TS = 1_700_000_000_000


def oscillating_prices(n: int, base: float = 100.0, amplitude: float = 5.0) -> list[float]:
    """Deterministic positive series: a sine wave around ``base`` with a mild trend."""
    return [base + amplitude * math.sin(i * 0.7) + 0.1 * i for i in range(n)]


def make_forecast(**overrides) -> ForecastResult:
    """ForecastResult with neutral defaults (expected 100, interval 95-105)."""
    defaults = dict(
        expected_value=100.0,
        lower_bound=95.0,
        upper_bound=105.0,
        error_margin=5.0,
        confidence_level=0.95,
        model=ForecastModel.ROLLING_REGRESSION,
        input_data_points=30,
        forecast_horizon=7,
        model_params={"alpha": 90.0, "beta": 0.5},
        rmse=2.0,
    )
    defaults.update(overrides)
    return ForecastResult(**defaults)


def make_risk(**overrides) -> RiskMetrics:
    """Low-risk RiskMetrics; override individual fields per test."""
    defaults = dict(
        volatility=0.2,
        volatility_daily=0.2 / math.sqrt(365),
        var95=0.03,
        var99=0.045,
        cvar95=0.04,
        cvar99=0.06,
        max_drawdown=0.05,
        current_drawdown=0.01,
        relative_uncertainty=0.001,
        total_value=10_000.0,
        at_risk_amount=300.0,
    )
    defaults.update(overrides)
    return RiskMetrics(**defaults)


@pytest.fixture
def mock_settings() -> AppSettings:
    """AppSettings with test defaults (no synthetic seeding)."""
    return AppSettings(
        log_level="DEBUG",
        history=HistorySettings(seed_synthetic=False),
    )


@pytest.fixture
def store() -> MarketHistory:
    """Fresh, empty history store."""
    return MarketHistory()


@pytest.fixture
def fill_series() -> Callable[..., None]:
    """Return a helper that appends ``prices`` at fixed spacing (daily by default)."""

    def _fill(
        store: MarketHistory,
        symbol: str,
        prices: Sequence[float],
        start_ms: int = BASE_TS,
        step_ms: int = DAY_MS,
    ) -> None:
        for i, price in enumerate(prices):
            store.append(symbol, price, start_ms + i * step_ms)

    return _fill


@pytest.fixture
def forecast_factory() -> Callable[..., ForecastResult]:
    """Builder for ForecastResult objects (see make_forecast)."""
    return make_forecast


@pytest.fixture
def risk_factory() -> Callable[..., RiskMetrics]:
    """Builder for RiskMetrics objects (see make_risk)."""
    return make_risk


@pytest.fixture
def wave() -> Callable[..., list[float]]:
    """Builder for deterministic oscillating price series."""
    return oscillating_prices
