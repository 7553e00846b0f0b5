"""Three-bucket portfolio allocator.

Brute-force discrete search over CASH / STABLE_EARN / SOL_STAKING weights.
Each candidate must pass the uncertainty safety gate and the VaR ceiling on
the volatile bucket; the survivor with the highest
``expected_return - risk_aversion * worst_case_loss`` wins. Nothing here
executes trades; the plan is a suggestion only.
"""

from dataclasses import dataclass, field
from enum import Enum

from riskdesk.config import AllocationSettings
from riskdesk.logging import get_logger
from riskdesk.risk.models import RiskMetrics

logger = get_logger(__name__)

DEFAULT_STEP_PCT = 5
MIN_STEP_PCT = 1
MAX_STEP_PCT = 20
DEFAULT_RISK_AVERSION = 0.35
_TOLERANCE = 1e-9


class AllocationBucket(str, Enum):
    """Allocation buckets."""

    CASH = "CASH"
    STABLE_EARN = "STABLE_EARN"
    SOL_STAKING = "SOL_STAKING"


@dataclass(frozen=True)
class AllocationInputs:
    """Inputs for a single allocation search.

    ``sol_risk`` describes the volatile bucket (usually SOL risk metrics).
    The safety gate triggers when ``current_relative_uncertainty`` exceeds
    ``max_uncertainty``.
    """

    total_usd: float
    stable_earn_apy: float
    sol_staking_apy: float
    sol_risk: RiskMetrics
    max_var95_loss_pct: float
    max_uncertainty: float
    current_relative_uncertainty: float
    horizon_days: int
    step_pct: int = DEFAULT_STEP_PCT
    risk_aversion: float = DEFAULT_RISK_AVERSION

    @classmethod
    def from_settings(
        cls,
        settings: AllocationSettings,
        total_usd: float,
        sol_risk: RiskMetrics,
        current_relative_uncertainty: float,
    ) -> "AllocationInputs":
        """Build inputs from configured APYs, limits and grid step."""
        return cls(
            total_usd=total_usd,
            stable_earn_apy=settings.stable_earn_apy,
            sol_staking_apy=settings.sol_staking_apy,
            sol_risk=sol_risk,
            max_var95_loss_pct=settings.max_var95_loss_pct,
            max_uncertainty=settings.max_uncertainty,
            current_relative_uncertainty=current_relative_uncertainty,
            horizon_days=settings.horizon_days,
            step_pct=settings.step_pct,
            risk_aversion=settings.risk_aversion,
        )


@dataclass
class AllocationPlan:
    """Selected allocation with expected return, worst case and reasoning."""

    horizon_days: int
    allocations: dict[AllocationBucket, float]  # fractions summing to 1
    expected_return_usd: float
    worst_case_loss_usd: float
    worst_case_loss_pct: float
    objective_score: float
    reasoning: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "horizon_days": self.horizon_days,
            "allocations": {bucket.value: pct for bucket, pct in self.allocations.items()},
            "expected_return_usd": self.expected_return_usd,
            "worst_case_loss_usd": self.worst_case_loss_usd,
            "worst_case_loss_pct": self.worst_case_loss_pct,
            "objective_score": self.objective_score,
            "reasoning": list(self.reasoning),
        }


def expected_return_over_horizon(principal: float, apy: float, horizon_days: int) -> float:
    """Simple (non-compounding) APY accrual over the horizon."""
    return principal * (apy / 365) * horizon_days


def worst_case_loss(sol_usd: float, sol_risk: RiskMetrics) -> float:
    """CVaR95 loss charged on the volatile bucket only."""
    return sol_usd * abs(sol_risk.cvar95)


def clamp_step(step_pct: int | None) -> int:
    """Grid step in whole percent, clamped to [1, 20]."""
    if step_pct is None:
        return DEFAULT_STEP_PCT
    return max(MIN_STEP_PCT, min(MAX_STEP_PCT, int(step_pct)))


def optimize_allocation(inputs: AllocationInputs) -> AllocationPlan:
    """Search the allocation grid and return the best admissible plan.

    The volatile bucket is the outer loop and the stable bucket the inner
    loop, both ascending; cash absorbs the remainder. Ties keep the first
    candidate found. If nothing is admissible the plan falls back to 100%
    STABLE_EARN.

    Args:
        inputs: Balances, yields, volatile-bucket risk and limits.

    Returns:
        AllocationPlan with a reproducible reasoning trace.
    """
    step = clamp_step(inputs.step_pct)
    gate_triggered = inputs.current_relative_uncertainty > inputs.max_uncertainty
    grid = range(0, 101, step)

    var_loss_pct = abs(inputs.sol_risk.var95)
    best: AllocationPlan | None = None
    evaluated = 0

    for sol_pct in grid:
        if gate_triggered and sol_pct > 0:
            continue

        for stable_pct in grid:
            cash_pct = 100 - sol_pct - stable_pct
            if cash_pct < 0:
                continue

            sol_usd = inputs.total_usd * sol_pct / 100
            stable_usd = inputs.total_usd * stable_pct / 100

            var_loss_usd = sol_usd * var_loss_pct
            max_allowed_usd = sol_usd * inputs.max_var95_loss_pct
            if var_loss_usd > max_allowed_usd + _TOLERANCE:
                continue

            evaluated += 1
            expected = expected_return_over_horizon(
                stable_usd, inputs.stable_earn_apy, inputs.horizon_days
            ) + expected_return_over_horizon(sol_usd, inputs.sol_staking_apy, inputs.horizon_days)
            loss = worst_case_loss(sol_usd, inputs.sol_risk)
            score = expected - inputs.risk_aversion * loss

            if best is None or score > best.objective_score:
                best = AllocationPlan(
                    horizon_days=inputs.horizon_days,
                    allocations={
                        AllocationBucket.CASH: cash_pct / 100,
                        AllocationBucket.STABLE_EARN: stable_pct / 100,
                        AllocationBucket.SOL_STAKING: sol_pct / 100,
                    },
                    expected_return_usd=expected,
                    worst_case_loss_usd=loss,
                    worst_case_loss_pct=loss / inputs.total_usd if inputs.total_usd > 0 else 0.0,
                    objective_score=score,
                )

    if best is None:
        logger.warning("allocation_fallback_stable", total_usd=inputs.total_usd)
        best = AllocationPlan(
            horizon_days=inputs.horizon_days,
            allocations={
                AllocationBucket.CASH: 0.0,
                AllocationBucket.STABLE_EARN: 1.0,
                AllocationBucket.SOL_STAKING: 0.0,
            },
            expected_return_usd=expected_return_over_horizon(
                inputs.total_usd, inputs.stable_earn_apy, inputs.horizon_days
            ),
            worst_case_loss_usd=0.0,
            worst_case_loss_pct=0.0,
            objective_score=0.0,
        )

    best.reasoning = build_reasoning(inputs, best, gate_triggered, step)
    logger.debug(
        "allocation_selected",
        candidates=evaluated,
        gate_triggered=gate_triggered,
        sol_staking=best.allocations[AllocationBucket.SOL_STAKING],
        stable_earn=best.allocations[AllocationBucket.STABLE_EARN],
        objective=best.objective_score,
    )
    return best


def build_reasoning(
    inputs: AllocationInputs,
    plan: AllocationPlan,
    gate_triggered: bool,
    step_pct: int,
) -> list[str]:
    """Ordered, deterministic explanation of the search and its result."""
    risk = inputs.sol_risk
    alloc = plan.allocations
    lines = [
        f"Objective: maximize expected return over {inputs.horizon_days}d "
        "while penalizing worst-case loss (CVaR95).",
        f"Discrete search step: {step_pct}%.",
        f"Stable Earn APY: {inputs.stable_earn_apy * 100:.2f}%; "
        f"SOL Staking APY: {inputs.sol_staking_apy * 100:.2f}%.",
        f"SOL risk: VaR95 {risk.var95 * 100:.2f}%, CVaR95 {risk.cvar95 * 100:.2f}%, "
        f"Vol {risk.volatility * 100:.2f}%.",
        f"Price relative uncertainty: {inputs.current_relative_uncertainty * 100:.3f}% "
        f"(max allowed {inputs.max_uncertainty * 100:.3f}%).",
    ]
    if gate_triggered:
        lines.append(
            "Safety gate: price uncertainty is above threshold, SOL allocation forced to 0%."
        )
    lines.append(
        f"Selected allocation: CASH {alloc[AllocationBucket.CASH] * 100:.0f}% | "
        f"STABLE_EARN {alloc[AllocationBucket.STABLE_EARN] * 100:.0f}% | "
        f"SOL_STAKING {alloc[AllocationBucket.SOL_STAKING] * 100:.0f}%."
    )
    lines.append(
        f"Expected return: ${plan.expected_return_usd:.2f}; "
        f"worst-case loss (CVaR95): ${plan.worst_case_loss_usd:.2f} "
        f"({plan.worst_case_loss_pct * 100:.2f}%)."
    )
    return lines
