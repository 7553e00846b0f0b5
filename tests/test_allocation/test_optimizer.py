"""Tests for the three-bucket allocation search."""

import pytest

from riskdesk.allocation.optimizer import (
    AllocationBucket,
    AllocationInputs,
    clamp_step,
    expected_return_over_horizon,
    optimize_allocation,
    worst_case_loss,
)
from riskdesk.config import AllocationSettings

CASH = AllocationBucket.CASH
STABLE = AllocationBucket.STABLE_EARN
SOL = AllocationBucket.SOL_STAKING


@pytest.fixture
def make_inputs(risk_factory):
    """Builder for AllocationInputs around a 10k portfolio."""

    def _make(**overrides) -> AllocationInputs:
        defaults = dict(
            total_usd=10_000.0,
            stable_earn_apy=0.06,
            sol_staking_apy=0.07,
            sol_risk=risk_factory(),
            max_var95_loss_pct=0.10,
            max_uncertainty=0.01,
            current_relative_uncertainty=0.001,
            horizon_days=7,
        )
        defaults.update(overrides)
        return AllocationInputs(**defaults)

    return _make


class TestHelpers:
    def test_expected_return_is_simple_accrual(self) -> None:
        assert expected_return_over_horizon(365.0, 0.10, 7) == pytest.approx(0.7)

    def test_worst_case_uses_cvar95(self, risk_factory) -> None:
        assert worst_case_loss(1000.0, risk_factory(cvar95=-0.05)) == pytest.approx(50.0)

    @pytest.mark.parametrize(
        ("step", "expected"), [(None, 5), (0, 1), (-3, 1), (7, 7), (50, 20)]
    )
    def test_clamp_step(self, step, expected) -> None:
        assert clamp_step(step) == expected


class TestOptimizeAllocation:
    """Grid search, constraints and tie-breaking."""

    def test_allocations_sum_to_one(self, make_inputs) -> None:
        plan = optimize_allocation(make_inputs())
        assert sum(plan.allocations.values()) == pytest.approx(1.0)
        assert set(plan.allocations) == {CASH, STABLE, SOL}

    def test_tail_risk_penalty_favours_stable(self, make_inputs) -> None:
        # CVaR95 of 4% dwarfs a week of staking yield
        plan = optimize_allocation(make_inputs())

        assert plan.allocations[STABLE] == 1.0
        assert plan.allocations[SOL] == 0.0
        assert plan.expected_return_usd == pytest.approx(10_000 * 0.06 / 365 * 7)
        assert plan.worst_case_loss_usd == 0.0

    def test_low_tail_risk_favours_staking(self, make_inputs, risk_factory) -> None:
        plan = optimize_allocation(make_inputs(sol_risk=risk_factory(cvar95=0.0001)))

        assert plan.allocations[SOL] == 1.0
        assert plan.worst_case_loss_usd == pytest.approx(1.0)
        assert plan.worst_case_loss_pct == pytest.approx(0.0001)

    def test_safety_gate_forces_zero_sol(self, make_inputs, risk_factory) -> None:
        inputs = make_inputs(
            sol_risk=risk_factory(cvar95=0.0001),
            current_relative_uncertainty=0.02,
        )

        plan = optimize_allocation(inputs)

        assert plan.allocations[SOL] == 0.0
        assert plan.allocations[STABLE] == 1.0
        assert (
            "Safety gate: price uncertainty is above threshold, SOL allocation forced to 0%."
            in plan.reasoning
        )

    def test_uncertainty_at_limit_does_not_trigger_gate(self, make_inputs, risk_factory) -> None:
        inputs = make_inputs(
            sol_risk=risk_factory(cvar95=0.0001),
            current_relative_uncertainty=0.01,
        )
        assert optimize_allocation(inputs).allocations[SOL] == 1.0

    def test_var_ceiling_excludes_volatile_bucket(self, make_inputs, risk_factory) -> None:
        inputs = make_inputs(sol_risk=risk_factory(var95=0.20, cvar95=0.0001))

        plan = optimize_allocation(inputs)

        assert plan.allocations[SOL] == 0.0

    def test_var_exactly_at_ceiling_is_admissible(self, make_inputs, risk_factory) -> None:
        inputs = make_inputs(sol_risk=risk_factory(var95=0.10, cvar95=0.0001))
        assert optimize_allocation(inputs).allocations[SOL] == 1.0

    def test_ties_keep_first_candidate(self, make_inputs, risk_factory) -> None:
        inputs = make_inputs(
            stable_earn_apy=0.0,
            sol_staking_apy=0.0,
            sol_risk=risk_factory(cvar95=0.0),
        )

        plan = optimize_allocation(inputs)

        assert plan.allocations[CASH] == 1.0
        assert plan.objective_score == 0.0

    def test_coarse_step_grid(self, make_inputs) -> None:
        plan = optimize_allocation(make_inputs(step_pct=20, stable_earn_apy=0.0))
        for fraction in plan.allocations.values():
            assert round(fraction * 100) % 20 == 0

    def test_from_settings(self, risk_factory) -> None:
        settings = AllocationSettings(step_pct=10, risk_aversion=0.5)

        inputs = AllocationInputs.from_settings(settings, 5000.0, risk_factory(), 0.002)

        assert inputs.total_usd == 5000.0
        assert inputs.step_pct == 10
        assert inputs.risk_aversion == 0.5
        assert inputs.stable_earn_apy == settings.stable_earn_apy
        assert inputs.current_relative_uncertainty == 0.002


class TestReasoning:
    def test_reasoning_lines(self, make_inputs) -> None:
        plan = optimize_allocation(make_inputs())

        assert plan.reasoning == [
            "Objective: maximize expected return over 7d while penalizing worst-case loss (CVaR95).",
            "Discrete search step: 5%.",
            "Stable Earn APY: 6.00%; SOL Staking APY: 7.00%.",
            "SOL risk: VaR95 3.00%, CVaR95 4.00%, Vol 20.00%.",
            "Price relative uncertainty: 0.100% (max allowed 1.000%).",
            "Selected allocation: CASH 0% | STABLE_EARN 100% | SOL_STAKING 0%.",
            "Expected return: $11.51; worst-case loss (CVaR95): $0.00 (0.00%).",
        ]

    def test_reasoning_is_reproducible(self, make_inputs) -> None:
        inputs = make_inputs(current_relative_uncertainty=0.05)
        assert optimize_allocation(inputs).reasoning == optimize_allocation(inputs).reasoning

    def test_to_dict_uses_bucket_names(self, make_inputs) -> None:
        data = optimize_allocation(make_inputs()).to_dict()
        assert data["allocations"] == {"CASH": 0.0, "STABLE_EARN": 1.0, "SOL_STAKING": 0.0}
        assert data["horizon_days"] == 7
        assert len(data["reasoning"]) == 7
