"""Tests for the dashboard JSON API."""

import math
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from riskdesk.config import AppSettings
from riskdesk.dashboard.app import create_dashboard_app
from riskdesk.market_data.history import MarketHistory

DAY_MS = 86_400_000
NOW_MS = 1_700_000_000_000


@pytest.fixture
def client(mock_settings: AppSettings, store: MarketHistory) -> TestClient:
    """Client over an app with an empty store and no feed monitor."""
    app = create_dashboard_app(settings=mock_settings, store=store)
    return TestClient(app)


@pytest.fixture
def sol_prices(store: MarketHistory, fill_series, wave) -> list[float]:
    """Thirty daily SOL prices loaded into the shared store."""
    prices = wave(30, base=150.0)
    fill_series(store, "SOL", prices)
    return prices


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


class TestMarketDataRoutes:
    def test_tokens(self, client: TestClient) -> None:
        resp = client.get("/api/tokens")
        assert resp.status_code == 200
        assert [t["symbol"] for t in resp.json()] == ["BTC", "ETH", "SOL", "USDC", "USDT"]

    def test_prices_without_monitor(self, client: TestClient) -> None:
        assert client.get("/api/prices").json() == {"quotes": [], "last_updated": None}

    def test_unsupported_symbol_is_404(self, client: TestClient) -> None:
        resp = client.get("/api/history/DOGE")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Unsupported token: DOGE"}

    def test_empty_history(self, client: TestClient) -> None:
        resp = client.get("/api/history/btc")
        assert resp.status_code == 200
        assert resp.json()["points"] == []

    def test_history_window(self, client: TestClient, sol_prices) -> None:
        data = client.get("/api/history/SOL").json()
        assert [p["price"] for p in data["points"]] == pytest.approx(sol_prices)

    def test_statistics(self, client: TestClient, sol_prices) -> None:
        resp = client.get("/api/history/SOL/statistics", params={"window": 10})

        assert resp.status_code == 200
        body = resp.json()
        assert body["statistics"]["count"] == 30
        assert len(body["rolling"]) == 21

    def test_statistics_insufficient(self, client: TestClient) -> None:
        resp = client.get("/api/history/SOL/statistics")
        assert resp.status_code == 422
        assert resp.json() == {"detail": "insufficient_data"}


# ---------------------------------------------------------------------------
# Risk and forecasts
# ---------------------------------------------------------------------------


class TestAnalyticsRoutes:
    def test_risk_insufficient_data(self, client: TestClient) -> None:
        resp = client.get("/api/risk/SOL")
        assert resp.status_code == 422

    def test_risk(self, client: TestClient, sol_prices) -> None:
        resp = client.get("/api/risk/SOL", params={"position_value": 1000, "relative_uncertainty": 0.002})

        assert resp.status_code == 200
        body = resp.json()
        assert body["total_value"] == 1000.0
        assert body["relative_uncertainty"] == 0.002
        assert body["at_risk_amount"] == pytest.approx(body["var95"] * 1000.0)

    def test_risk_with_zero_price_quote(self, client: TestClient, sol_prices) -> None:
        quote = SimpleNamespace(relative_uncertainty=math.inf)
        client.app.state.feed_monitor = SimpleNamespace(get_quote=lambda symbol: quote)

        resp = client.get("/api/risk/SOL", params={"position_value": 1000})

        assert resp.status_code == 200
        assert resp.json()["relative_uncertainty"] is None

    def test_portfolio_risk(
        self, client: TestClient, store: MarketHistory, fill_series, wave, sol_prices
    ) -> None:
        fill_series(store, "ETH", wave(30, base=3000.0, amplitude=100.0))

        resp = client.post(
            "/api/risk/portfolio",
            json={"positions": [{"symbol": "sol", "value": 600}, {"symbol": "ETH", "value": 400}]},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["diversification"] == 0.85
        assert body["total_value"] == 1000.0
        assert body["var99"] == pytest.approx(body["var95"] * 1.5)

    def test_portfolio_unsupported_symbol(self, client: TestClient) -> None:
        resp = client.post("/api/risk/portfolio", json={"positions": [{"symbol": "DOGE", "value": 1}]})
        assert resp.status_code == 404

    def test_forecast(self, client: TestClient, sol_prices) -> None:
        resp = client.get(
            "/api/forecast/SOL", params={"model": "rolling_regression", "horizon": 3}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["model"] == "rolling_regression"
        assert body["forecast_horizon"] == 3
        assert body["lower_bound"] <= body["expected_value"] <= body["upper_bound"]

    def test_forecast_defaults_to_ensemble(self, client: TestClient, sol_prices) -> None:
        body = client.get("/api/forecast/SOL").json()
        assert body["model"] == "ensemble"
        assert body["confidence_level"] == 0.95

    def test_forecast_insufficient_data(self, client: TestClient) -> None:
        assert client.get("/api/forecast/ETH").status_code == 422

    def test_cashflow(self, client: TestClient) -> None:
        events = [
            {"timestamp": int(NOW_MS - (i + 0.5) * DAY_MS), "amount": -20.0} for i in range(30)
        ]

        resp = client.post(
            "/api/cashflow/forecast",
            json={"starting_balance": 500.0, "events": events, "now_ms": NOW_MS},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["expected_ending_balance"] == pytest.approx(360.0)
        assert body["probability_of_overdraft"] == 0.0

    def test_cashflow_without_events(self, client: TestClient) -> None:
        resp = client.post("/api/cashflow/forecast", json={"starting_balance": 500.0})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Allocation and policy
# ---------------------------------------------------------------------------


class TestAllocationRoute:
    def test_gate_triggered(self, client: TestClient, sol_prices) -> None:
        resp = client.post(
            "/api/allocation",
            json={"total_usd": 10_000, "current_relative_uncertainty": 0.02},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["allocations"]["SOL_STAKING"] == 0.0
        assert sum(body["allocations"].values()) == pytest.approx(1.0)
        assert any(line.startswith("Safety gate") for line in body["reasoning"])

    def test_overrides_applied(self, client: TestClient, sol_prices) -> None:
        body = client.post(
            "/api/allocation", json={"total_usd": 5000, "step_pct": 20, "horizon_days": 30}
        ).json()

        assert body["horizon_days"] == 30
        assert "Discrete search step: 20%." in body["reasoning"]

    def test_negative_total_rejected(self, client: TestClient) -> None:
        assert client.post("/api/allocation", json={"total_usd": -1}).status_code == 422


class TestPolicyRoute:
    def test_blocked(self, client: TestClient) -> None:
        resp = client.post(
            "/api/policy/evaluate", json={"amount": 5000, "token": "sol", "uncertainty": 0.08}
        )
        assert resp.json() == {
            "type": "block",
            "message": "Transaction blocked: Price uncertainty exceeds 5%",
        }

    def test_single_transaction_cap(self, client: TestClient) -> None:
        body = client.post("/api/policy/evaluate", json={"amount": 750, "token": "USDC"}).json()
        assert body["type"] == "block"

    def test_daily_cap(self, client: TestClient) -> None:
        body = client.post(
            "/api/policy/evaluate", json={"amount": 300, "token": "USDC", "daily_spent": 900}
        ).json()
        assert body["message"] == "Transaction blocked: daily limit of $1,000 exceeded"

    def test_small_amount_falls_through(self, client: TestClient) -> None:
        body = client.post("/api/policy/evaluate", json={"amount": 10, "token": "USDC"}).json()
        assert body["type"] == "require_approval"
        assert body["message"] == "No matching policy. Manual approval required."


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class TestDecisionRoutes:
    """Create, inspect and resolve a decision."""

    def test_create_requires_history(self, client: TestClient) -> None:
        resp = client.post("/api/decisions/BTC", json={"position_value": 1000})
        assert resp.status_code == 422

    def test_create(self, client: TestClient, sol_prices) -> None:
        resp = client.post("/api/decisions/sol", json={"position_value": 1000})

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert body["id"].startswith("DEC-")
        assert body["recommendation"]["symbol"] == "SOL"
        assert body["certificate"]["inputs"]["current_price"] == pytest.approx(sol_prices[-1])
        assert body["certificate"]["verified_at"] is None
        assert body["certificate"]["inputs"]["forecast_horizon"] == 7

    def test_create_with_explicit_horizon(self, client: TestClient, sol_prices) -> None:
        resp = client.post("/api/decisions/SOL", json={"position_value": 1000, "horizon_days": 3})
        assert resp.json()["certificate"]["inputs"]["forecast_horizon"] == 3

    @pytest.mark.parametrize(
        "overrides",
        [{"horizon_days": -1}, {"horizon_days": 0}, {"confidence_level": 1.5}],
    )
    def test_create_rejects_out_of_range_forecast_inputs(
        self, client: TestClient, sol_prices, overrides
    ) -> None:
        resp = client.post("/api/decisions/SOL", json={"position_value": 1000, **overrides})
        assert resp.status_code == 422

    def test_get_includes_certificate_text(self, client: TestClient, sol_prices) -> None:
        decision_id = client.post("/api/decisions/SOL", json={"position_value": 1000}).json()["id"]

        resp = client.get(f"/api/decisions/{decision_id}")

        assert resp.status_code == 200
        assert resp.json()["certificate_text"].startswith("RISK CERTIFICATE")

    def test_approve_once(self, client: TestClient, sol_prices) -> None:
        decision_id = client.post("/api/decisions/SOL", json={"position_value": 1000}).json()["id"]

        resp = client.post(
            f"/api/decisions/{decision_id}/approve",
            json={"reasoning": "within limits", "verified_by": "alice"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "approved"
        assert body["certificate"]["verified_by"] == "alice"
        assert body["certificate"]["approval_reasoning"] == "within limits"

        assert client.post(f"/api/decisions/{decision_id}/approve").status_code == 409
        assert client.post(f"/api/decisions/{decision_id}/reject").status_code == 409

    def test_reject_without_body(self, client: TestClient, sol_prices) -> None:
        decision_id = client.post("/api/decisions/SOL", json={"position_value": 0}).json()["id"]

        body = client.post(f"/api/decisions/{decision_id}/reject").json()

        assert body["status"] == "rejected"
        assert body["certificate"]["verified_by"] == "user"

    def test_unknown_decision(self, client: TestClient) -> None:
        assert client.get("/api/decisions/DEC-0-nothere").status_code == 404
        assert client.post("/api/decisions/DEC-0-nothere/approve").status_code == 404
