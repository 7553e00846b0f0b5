"""Policy engine -- deterministic rules gating transactions.

Each rule pairs one typed condition with an action. Active rules are checked
in order and the first whose condition holds decides the outcome; when none
matches, manual approval is required.

Conditions:
  - AmountThreshold: transaction amount compared against a threshold
  - TokenRestriction: token is blocked or outside the allowed list
  - TimeRestriction: local hour within an inclusive window
  - UncertaintyThreshold: price uncertainty above a ceiling
  - DailySpendLimit: amount plus today's spend above a daily cap
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from riskdesk.config import PolicySettings


class Comparison(str, Enum):
    GT = "gt"
    LT = "lt"
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"

    def compare(self, a: float, b: float) -> bool:
        if self is Comparison.GT:
            return a > b
        if self is Comparison.LT:
            return a < b
        if self is Comparison.EQ:
            return a == b
        if self is Comparison.GTE:
            return a >= b
        return a <= b


class PolicyActionType(str, Enum):
    REQUIRE_APPROVAL = "require_approval"
    BLOCK = "block"
    ALLOW = "allow"
    NOTIFY = "notify"


@dataclass(frozen=True)
class AmountThreshold:
    threshold: float
    operator: Comparison = Comparison.GT


@dataclass(frozen=True)
class TokenRestriction:
    allowed: tuple[str, ...] | None = None
    blocked: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeRestriction:
    """Inclusive hour window; with both ends None the condition always holds."""

    start_hour: int | None = None
    end_hour: int | None = None


@dataclass(frozen=True)
class UncertaintyThreshold:
    max_uncertainty: float


@dataclass(frozen=True)
class DailySpendLimit:
    max_daily_spend: float


PolicyCondition = (
    AmountThreshold | TokenRestriction | TimeRestriction | UncertaintyThreshold | DailySpendLimit
)


@dataclass(frozen=True)
class PolicyAction:
    type: PolicyActionType
    message: str | None = None

    def to_dict(self) -> dict:
        return {"type": self.type.value, "message": self.message}


@dataclass(frozen=True)
class PolicyRule:
    id: str
    name: str
    condition: PolicyCondition
    action: PolicyAction
    is_active: bool = True


@dataclass(frozen=True)
class PolicyContext:
    """The transaction being evaluated."""

    amount: float
    token: str
    uncertainty: float
    daily_spent: float = 0.0


DEFAULT_ACTION = PolicyAction(
    PolicyActionType.REQUIRE_APPROVAL, "No matching policy. Manual approval required."
)


def evaluate_condition(
    condition: PolicyCondition,
    context: PolicyContext,
    now: datetime | None = None,
) -> bool:
    """Return True when ``condition`` holds for ``context``."""
    if isinstance(condition, AmountThreshold):
        return condition.operator.compare(context.amount, condition.threshold)

    if isinstance(condition, TokenRestriction):
        if context.token in condition.blocked:
            return True
        return condition.allowed is not None and context.token not in condition.allowed

    if isinstance(condition, TimeRestriction):
        if condition.start_hour is None or condition.end_hour is None:
            return True
        hour = (now or datetime.now()).hour
        return condition.start_hour <= hour <= condition.end_hour

    if isinstance(condition, UncertaintyThreshold):
        return context.uncertainty > condition.max_uncertainty

    if isinstance(condition, DailySpendLimit):
        return context.daily_spent + context.amount > condition.max_daily_spend

    raise TypeError(f"Unknown policy condition: {type(condition).__name__}")


def apply_policies(
    policies: list[PolicyRule],
    context: PolicyContext,
    now: datetime | None = None,
) -> PolicyAction:
    """Action of the first active rule whose condition holds."""
    for rule in policies:
        if not rule.is_active:
            continue
        if evaluate_condition(rule.condition, context, now):
            return rule.action
    return DEFAULT_ACTION


def create_default_policies(settings: PolicySettings | None = None) -> list[PolicyRule]:
    """Built-in rules: block >5% uncertainty, approve large amounts, stablecoin-only (off)."""
    settings = settings or PolicySettings()
    return [
        PolicyRule(
            id="block-high-uncertainty",
            name="Block High Uncertainty",
            condition=UncertaintyThreshold(max_uncertainty=0.05),
            action=PolicyAction(
                PolicyActionType.BLOCK, "Transaction blocked: Price uncertainty exceeds 5%"
            ),
        ),
        PolicyRule(
            id="require-approval-large",
            name="Require Approval for Large Transactions",
            condition=AmountThreshold(
                threshold=settings.require_approval_above_usd, operator=Comparison.GTE
            ),
            action=PolicyAction(
                PolicyActionType.REQUIRE_APPROVAL,
                f"Transaction requires manual approval (>${settings.require_approval_above_usd:,.0f})",
            ),
        ),
        PolicyRule(
            id="stablecoin-only",
            name="Stablecoin Only",
            condition=TokenRestriction(
                allowed=tuple(settings.preferred_stablecoins),
                blocked=tuple(settings.blocked_tokens),
            ),
            action=PolicyAction(
                PolicyActionType.REQUIRE_APPROVAL, "Non-stablecoin transaction requires approval"
            ),
            is_active=False,
        ),
    ]


def create_spend_limit_policies(settings: PolicySettings | None = None) -> list[PolicyRule]:
    """Hard blocks for the daily cap and the single transaction cap."""
    settings = settings or PolicySettings()
    return [
        PolicyRule(
            id="block-daily-limit",
            name="Daily Spend Limit",
            condition=DailySpendLimit(max_daily_spend=settings.max_daily_spend_usd),
            action=PolicyAction(
                PolicyActionType.BLOCK,
                f"Transaction blocked: daily limit of ${settings.max_daily_spend_usd:,.0f} exceeded",
            ),
        ),
        PolicyRule(
            id="block-single-limit",
            name="Single Transaction Limit",
            condition=AmountThreshold(threshold=settings.max_single_transaction_usd),
            action=PolicyAction(
                PolicyActionType.BLOCK,
                "Transaction blocked: amount exceeds single transaction limit "
                f"of ${settings.max_single_transaction_usd:,.0f}",
            ),
        ),
    ]


def create_policy_set(settings: PolicySettings | None = None) -> list[PolicyRule]:
    """Default rules with the spend limits inserted after the uncertainty block."""
    defaults = create_default_policies(settings)
    return [defaults[0], *create_spend_limit_policies(settings), *defaults[1:]]
