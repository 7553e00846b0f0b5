"""Tests for policy conditions and rule evaluation."""

from datetime import datetime

import pytest

from riskdesk.config import PolicySettings
from riskdesk.decision.policy import (
    DEFAULT_ACTION,
    AmountThreshold,
    Comparison,
    DailySpendLimit,
    PolicyAction,
    PolicyActionType,
    PolicyContext,
    PolicyRule,
    TimeRestriction,
    TokenRestriction,
    UncertaintyThreshold,
    apply_policies,
    create_default_policies,
    create_policy_set,
    create_spend_limit_policies,
    evaluate_condition,
)


def _ctx(
    amount: float = 50.0,
    token: str = "USDC",
    uncertainty: float = 0.001,
    daily_spent: float = 0.0,
) -> PolicyContext:
    return PolicyContext(amount=amount, token=token, uncertainty=uncertainty, daily_spent=daily_spent)


def _rule(rule_id: str, condition, action_type: PolicyActionType, is_active: bool = True) -> PolicyRule:
    return PolicyRule(rule_id, rule_id, condition, PolicyAction(action_type, rule_id), is_active)


class TestConditions:
    @pytest.mark.parametrize(
        ("operator", "amount", "expected"),
        [
            (Comparison.GT, 100.0, False),
            (Comparison.GT, 100.01, True),
            (Comparison.GTE, 100.0, True),
            (Comparison.LT, 99.0, True),
            (Comparison.LTE, 100.0, True),
            (Comparison.EQ, 100.0, True),
            (Comparison.EQ, 101.0, False),
        ],
    )
    def test_amount_threshold(self, operator, amount, expected) -> None:
        condition = AmountThreshold(100.0, operator)
        assert evaluate_condition(condition, _ctx(amount=amount)) is expected

    def test_token_restriction(self) -> None:
        condition = TokenRestriction(allowed=("USDC", "USDT"), blocked=("DOGE",))

        assert evaluate_condition(condition, _ctx(token="USDC")) is False
        assert evaluate_condition(condition, _ctx(token="SOL")) is True
        assert evaluate_condition(condition, _ctx(token="DOGE")) is True

    def test_blocked_only_restriction(self) -> None:
        condition = TokenRestriction(blocked=("SOL",))
        assert evaluate_condition(condition, _ctx(token="SOL")) is True
        assert evaluate_condition(condition, _ctx(token="BTC")) is False

    def test_time_window_is_inclusive(self) -> None:
        condition = TimeRestriction(start_hour=9, end_hour=17)

        assert evaluate_condition(condition, _ctx(), now=datetime(2024, 1, 1, 9, 0))
        assert evaluate_condition(condition, _ctx(), now=datetime(2024, 1, 1, 17, 59))
        assert not evaluate_condition(condition, _ctx(), now=datetime(2024, 1, 1, 18, 0))
        assert not evaluate_condition(condition, _ctx(), now=datetime(2024, 1, 1, 8, 59))

    def test_open_time_window_always_holds(self) -> None:
        assert evaluate_condition(TimeRestriction(), _ctx())
        assert evaluate_condition(TimeRestriction(start_hour=3), _ctx())

    def test_uncertainty_threshold(self) -> None:
        condition = UncertaintyThreshold(0.05)
        assert evaluate_condition(condition, _ctx(uncertainty=0.06))
        assert not evaluate_condition(condition, _ctx(uncertainty=0.05))

    def test_daily_spend_limit(self) -> None:
        condition = DailySpendLimit(1000.0)
        assert evaluate_condition(condition, _ctx(amount=200.0, daily_spent=900.0))
        assert not evaluate_condition(condition, _ctx(amount=100.0, daily_spent=900.0))

    def test_unknown_condition_type(self) -> None:
        with pytest.raises(TypeError):
            evaluate_condition("amount > 5", _ctx())  # type: ignore[arg-type]


class TestApplyPolicies:
    def test_first_matching_rule_wins(self) -> None:
        rules = [
            _rule("small", AmountThreshold(10.0, Comparison.LT), PolicyActionType.ALLOW),
            _rule("notify", AmountThreshold(20.0), PolicyActionType.NOTIFY),
            _rule("block", AmountThreshold(30.0), PolicyActionType.BLOCK),
        ]

        action = apply_policies(rules, _ctx(amount=50.0))

        assert action.type is PolicyActionType.NOTIFY
        assert action.message == "notify"

    def test_inactive_rules_are_skipped(self) -> None:
        rules = [
            _rule("off", AmountThreshold(0.0), PolicyActionType.BLOCK, is_active=False),
            _rule("on", AmountThreshold(0.0), PolicyActionType.ALLOW),
        ]
        assert apply_policies(rules, _ctx()).type is PolicyActionType.ALLOW

    def test_no_match_requires_approval(self) -> None:
        assert apply_policies([], _ctx()) is DEFAULT_ACTION
        assert DEFAULT_ACTION.to_dict() == {
            "type": "require_approval",
            "message": "No matching policy. Manual approval required.",
        }


class TestDefaultPolicies:
    def test_rule_order_and_activity(self) -> None:
        rules = create_default_policies()
        assert [r.id for r in rules] == [
            "block-high-uncertainty",
            "require-approval-large",
            "stablecoin-only",
        ]
        assert [r.is_active for r in rules] == [True, True, False]

    def test_high_uncertainty_blocked_before_amount(self) -> None:
        action = apply_policies(create_default_policies(), _ctx(amount=5000.0, uncertainty=0.08))
        assert action.type is PolicyActionType.BLOCK
        assert action.message == "Transaction blocked: Price uncertainty exceeds 5%"

    def test_large_amount_requires_approval(self) -> None:
        action = apply_policies(create_default_policies(), _ctx(amount=100.0))
        assert action.type is PolicyActionType.REQUIRE_APPROVAL
        assert action.message == "Transaction requires manual approval (>$100)"

    def test_threshold_from_settings(self) -> None:
        rules = create_default_policies(PolicySettings(require_approval_above_usd=2500.0))

        assert apply_policies(rules, _ctx(amount=1000.0)) is DEFAULT_ACTION
        assert apply_policies(rules, _ctx(amount=2500.0)).message == (
            "Transaction requires manual approval (>$2,500)"
        )

    def test_stablecoin_rule_uses_settings(self) -> None:
        settings = PolicySettings(preferred_stablecoins=["USDC"], blocked_tokens=["DOGE"])
        rule = create_default_policies(settings)[2]
        assert rule.condition == TokenRestriction(allowed=("USDC",), blocked=("DOGE",))


class TestSpendLimits:
    def test_limit_rules(self) -> None:
        rules = create_spend_limit_policies(
            PolicySettings(max_daily_spend_usd=2000.0, max_single_transaction_usd=750.0)
        )

        assert [r.id for r in rules] == ["block-daily-limit", "block-single-limit"]
        assert rules[0].condition == DailySpendLimit(2000.0)
        assert rules[1].condition == AmountThreshold(750.0)

    def test_policy_set_order(self) -> None:
        assert [r.id for r in create_policy_set()] == [
            "block-high-uncertainty",
            "block-daily-limit",
            "block-single-limit",
            "require-approval-large",
            "stablecoin-only",
        ]

    def test_daily_cap_blocks(self) -> None:
        action = apply_policies(create_policy_set(), _ctx(amount=300.0, daily_spent=800.0))
        assert action.type is PolicyActionType.BLOCK
        assert action.message == "Transaction blocked: daily limit of $1,000 exceeded"

    def test_single_cap_blocks(self) -> None:
        action = apply_policies(create_policy_set(), _ctx(amount=600.0))
        assert action.type is PolicyActionType.BLOCK
        assert action.message == (
            "Transaction blocked: amount exceeds single transaction limit of $500"
        )

    def test_at_single_cap_needs_approval(self) -> None:
        action = apply_policies(create_policy_set(), _ctx(amount=500.0))
        assert action.type is PolicyActionType.REQUIRE_APPROVAL
        assert action.message == "Transaction requires manual approval (>$100)"
