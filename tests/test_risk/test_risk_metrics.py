"""Tests for VaR, CVaR, volatility and portfolio aggregation."""

import math

import pytest

from riskdesk.analytics.stats import log_returns, std_dev
from riskdesk.market_data.history import MarketHistory
from riskdesk.risk.metrics import (
    calculate_portfolio_risk,
    calculate_risk_metrics,
    cvar,
    cvar_from_prices,
    format_risk_metrics,
    generate_risk_report,
    var_historical,
    var_historical_from_prices,
    var_parametric,
    volatility_metrics,
)


def _prices_from_returns(returns: list[float], start: float = 100.0) -> list[float]:
    prices = [start]
    for r in returns:
        prices.append(prices[-1] * math.exp(r))
    return prices


class TestMinimumData:
    """Fewer than 10 prices yields zeros, never an error."""

    def test_zero_var_below_ten_prices(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "SOL", wave(9))

        assert var_historical(store, "SOL").var_relative == 0.0
        assert var_parametric(store, "SOL", position_value=1000).var_absolute == 0.0
        assert cvar(store, "SOL").cvar_relative == 0.0

    def test_risk_metrics_below_ten_prices(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "SOL", wave(9))

        metrics = calculate_risk_metrics(store, "SOL", 1000.0)

        assert metrics.var95 == 0.0
        assert metrics.cvar99 == 0.0
        assert metrics.at_risk_amount == 0.0
        assert metrics.volatility > 0.0

    def test_unknown_symbol(self, store: MarketHistory) -> None:
        metrics = calculate_risk_metrics(store, "BTC", 500.0)
        assert metrics.volatility == 0.0
        assert metrics.max_drawdown == 0.0
        assert metrics.total_value == 500.0


class TestValueAtRisk:
    def test_historical_var_picks_tail_return(self) -> None:
        returns = [0.01, -0.05, 0.02, -0.01, 0.03, 0.0, -0.02, 0.015, 0.005, -0.005]
        prices = _prices_from_returns(returns)

        result = var_historical_from_prices(prices, 0.95, position_value=2000.0)

        # floor(0.05 * 10) = 0 -> the worst return
        assert result.var_relative == pytest.approx(0.05)
        assert result.var_absolute == pytest.approx(100.0)

    def test_parametric_var_monotone_in_confidence(
        self, store: MarketHistory, fill_series, wave
    ) -> None:
        fill_series(store, "SOL", wave(40))

        v90 = var_parametric(store, "SOL", 0.90).var_relative
        v95 = var_parametric(store, "SOL", 0.95).var_relative
        v99 = var_parametric(store, "SOL", 0.99).var_relative

        assert 0.0 <= v90 <= v95 <= v99
        assert v99 > 0.0

    def test_parametric_var_grows_with_horizon(
        self, store: MarketHistory, fill_series, wave
    ) -> None:
        fill_series(store, "SOL", wave(40))
        one_day = var_parametric(store, "SOL", horizon_days=1).var_relative
        ten_day = var_parametric(store, "SOL", horizon_days=10).var_relative
        assert ten_day > one_day

    def test_steady_rise_has_zero_parametric_var(self, store: MarketHistory, fill_series) -> None:
        fill_series(store, "BTC", [100.0 * 1.01 ** i for i in range(20)])
        assert var_parametric(store, "BTC").var_relative == 0.0


class TestConditionalValueAtRisk:
    def test_cvar_is_mean_of_tail(self) -> None:
        returns = [-0.04, -0.06] + [0.01] * 38
        prices = _prices_from_returns(returns)

        # 40 returns: floor(0.05 * 40) = 2 -> VaR is |0.01|, tail is both losses
        result = cvar_from_prices(prices, 0.95, position_value=100.0)

        assert result.cvar_relative == pytest.approx(0.05)
        assert result.cvar_absolute == pytest.approx(5.0)

    def test_cvar_falls_back_to_var_with_empty_tail(self) -> None:
        prices = _prices_from_returns([0.01] * 12)
        var_rel = var_historical_from_prices(prices).var_relative
        assert cvar_from_prices(prices).cvar_relative == pytest.approx(var_rel)

    def test_cvar_at_least_historical_var(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "ETH", wave(50, base=3000.0, amplitude=150.0))
        for confidence in (0.90, 0.95, 0.99):
            assert (
                cvar(store, "ETH", confidence).cvar_relative
                >= var_historical(store, "ETH", confidence).var_relative
            )


class TestVolatility:
    def test_sqrt_time_scaling(self, store: MarketHistory, fill_series, wave) -> None:
        prices = wave(30)
        fill_series(store, "SOL", prices)

        vol = volatility_metrics(store, "SOL")

        daily = std_dev(log_returns(prices))
        assert vol.daily == pytest.approx(daily)
        assert vol.annualized == pytest.approx(daily * math.sqrt(365))
        assert vol.weekly == pytest.approx(daily * math.sqrt(7))
        assert vol.monthly == pytest.approx(daily * math.sqrt(30))

    def test_single_price_is_zero(self, store: MarketHistory) -> None:
        store.append("SOL", 100.0, 0)
        assert volatility_metrics(store, "SOL").annualized == 0.0


class TestRiskMetrics:
    def test_composition(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "SOL", wave(40))

        metrics = calculate_risk_metrics(store, "SOL", 1000.0, relative_uncertainty=0.002)

        assert metrics.var95 == pytest.approx(var_parametric(store, "SOL", 0.95).var_relative)
        assert metrics.cvar95 == pytest.approx(cvar(store, "SOL", 0.95).cvar_relative)
        assert metrics.at_risk_amount == pytest.approx(metrics.var95 * 1000.0)
        assert metrics.max_drawdown == pytest.approx(store.statistics("SOL").max_drawdown)
        assert metrics.relative_uncertainty == 0.002
        assert metrics.to_dict()["total_value"] == 1000.0


class TestPortfolioRisk:
    """Value-weighted aggregation with the flat diversification factor."""

    def test_empty_portfolio_is_zero(self, store: MarketHistory) -> None:
        result = calculate_portfolio_risk(store, [])
        assert result.var95 == 0.0
        assert result.total_value == 0.0
        assert result.diversification == 0.0

    def test_zero_value_portfolio_is_zero(self, store: MarketHistory) -> None:
        assert calculate_portfolio_risk(store, [("SOL", 0.0)]).at_risk_amount == 0.0

    def test_single_position_undiscounted(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "SOL", wave(40))
        single = calculate_risk_metrics(store, "SOL", 1000.0)

        result = calculate_portfolio_risk(store, [("SOL", 1000.0)])

        assert result.diversification == 1.0
        assert result.var95 == pytest.approx(single.var95)
        assert result.volatility == pytest.approx(single.volatility)

    def test_multi_position_multipliers(self, store: MarketHistory, fill_series, wave) -> None:
        prices = wave(40)
        fill_series(store, "SOL", prices)
        fill_series(store, "ETH", prices)
        v = calculate_risk_metrics(store, "SOL", 1.0).var95

        result = calculate_portfolio_risk(store, [("SOL", 600.0), ("ETH", 400.0, 0.01)])

        assert result.diversification == 0.85
        assert result.var95 == pytest.approx(v * 0.85)
        assert result.var99 == pytest.approx(v * 1.5 * 0.85)
        assert result.cvar95 == pytest.approx(v * 1.2 * 0.85)
        assert result.cvar99 == pytest.approx(v * 1.8 * 0.85)
        assert result.max_drawdown == pytest.approx(v * 2)
        assert result.current_drawdown == 0.0
        assert result.relative_uncertainty == pytest.approx(0.004)
        assert result.total_value == 1000.0
        assert result.at_risk_amount == pytest.approx(v * 1000.0 * 0.85)


class TestFormatting:
    def test_format_risk_metrics(self, risk_factory) -> None:
        formatted = format_risk_metrics(risk_factory(at_risk_amount=1234.4))
        assert formatted == {
            "volatility": "20.00%",
            "var95": "3.00%",
            "var99": "4.50%",
            "cvar95": "4.00%",
            "max_drawdown": "5.00%",
            "at_risk_amount": "$1,234",
        }

    def test_report(self, store: MarketHistory, fill_series, wave) -> None:
        fill_series(store, "SOL", wave(40))

        report = generate_risk_report(store, "SOL", 1000.0)

        assert report.startswith("RISK ASSESSMENT REPORT")
        assert "Asset: SOL" in report
        assert "Position Value: $1,000.00" in report
        assert "VALUE AT RISK (VaR)" in report
        assert "over the next day." in report

    def test_to_dict_maps_non_finite_to_none(self, risk_factory) -> None:
        data = risk_factory(relative_uncertainty=math.inf).to_dict()

        assert data["relative_uncertainty"] is None
        assert data["var95"] == 0.03
