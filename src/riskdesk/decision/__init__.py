"""Decision engine, risk certificates, approval workflow and policy rules."""

from riskdesk.decision.approval import DecisionRegistry, DecisionStatus, DecisionWorkflow
from riskdesk.decision.engine import decide, format_risk_certificate, generate_risk_certificate
from riskdesk.decision.models import (
    DecisionRecommendation,
    DecisionType,
    RiskCertificate,
    Urgency,
)
from riskdesk.decision.policy import (
    PolicyAction,
    PolicyContext,
    PolicyRule,
    apply_policies,
    create_default_policies,
    create_policy_set,
    create_spend_limit_policies,
    evaluate_condition,
)

__all__ = [
    "DecisionRecommendation",
    "DecisionRegistry",
    "DecisionStatus",
    "DecisionType",
    "DecisionWorkflow",
    "PolicyAction",
    "PolicyContext",
    "PolicyRule",
    "RiskCertificate",
    "Urgency",
    "apply_policies",
    "create_default_policies",
    "create_policy_set",
    "create_spend_limit_policies",
    "decide",
    "evaluate_condition",
    "format_risk_certificate",
    "generate_risk_certificate",
]
