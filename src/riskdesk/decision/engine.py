"""Decision engine -- turns a forecast and risk metrics into a recommendation.

Core flow:
  1. Classify the decision type (first matching rule wins)
  2. Score data quality from price staleness, uncertainty, volatility, depth
  3. Estimate probability of loss from the forecast interval
  4. Derive urgency and an overall confidence score
  5. Attach a suggested action and alternatives
  6. Issue a risk certificate capturing every input and output

The engine never raises on degenerate input. A position value of zero gives
a zero probability of loss; a non-positive VaR95 leaves the recommended
maximum position equal to the current position.
"""

import math
import time
import uuid
from dataclasses import dataclass
from typing import Protocol

from riskdesk.analytics.stats import normal_cdf_erf
from riskdesk.decision.models import (
    ActionType,
    Alternative,
    CertificateInputs,
    CertificateModel,
    CertificateOutputs,
    DecisionRecommendation,
    DecisionType,
    Justification,
    RiskAssessment,
    RiskCertificate,
    SuggestedAction,
    Urgency,
)
from riskdesk.forecast.engine import format_forecast, model_formula
from riskdesk.forecast.models import ForecastResult
from riskdesk.logging import get_logger
from riskdesk.risk.metrics import format_risk_metrics
from riskdesk.risk.models import RiskMetrics

logger = get_logger(__name__)

CERTIFICATE_VERSION = "1.0.0"
MAX_ACCEPTABLE_LOSS_PCT = 0.05

DECISION_TITLES: dict[DecisionType, str] = {
    DecisionType.HOLD: "Hold Position",
    DecisionType.REDUCE_EXPOSURE: "Reduce Exposure",
    DecisionType.INCREASE_STABLE: "Increase Stablecoin Allocation",
    DecisionType.TAKE_PROFIT: "Take Partial Profits",
    DecisionType.ADD_COLLATERAL: "Add Collateral",
}

CERTIFICATE_ASSUMPTIONS: tuple[str, ...] = (
    "Historical returns are representative of future behavior",
    "Price movements follow approximately normal distribution",
    "Volatility is constant over the forecast horizon",
    "No extreme market events (black swans) during forecast period",
    "Liquidity is sufficient for position adjustments",
)

CERTIFICATE_LIMITATIONS: tuple[str, ...] = (
    "Past performance does not guarantee future results",
    "VaR assumes normal distribution (underestimates tail risk)",
    "Forecast accuracy decreases with longer horizons",
    "External factors (news, regulations) not modeled",
    "Correlation with other assets not considered",
)


class PriceQuality(Protocol):
    """Live price-quality reading (a PriceQuote satisfies this)."""

    is_stale: bool
    relative_uncertainty: float


@dataclass(frozen=True)
class PriceQualityReading:
    """Standalone price-quality reading for callers without a live quote."""

    is_stale: bool
    relative_uncertainty: float


#: Used when no live quote exists: treated as stale, uncertainty unknown (0).
NO_LIVE_QUOTE = PriceQualityReading(is_stale=True, relative_uncertainty=0.0)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _short_id() -> str:
    return uuid.uuid4().hex[:9]


# ---------------------------------------------------------------------------
# Scoring rules
# ---------------------------------------------------------------------------


def determine_decision_type(forecast: ForecastResult, risk: RiskMetrics) -> DecisionType:
    """Classify the decision. Rules are checked in a fixed order."""
    if risk.volatility > 0.5 and forecast.expected_value < forecast.lower_bound * 1.1:
        return DecisionType.REDUCE_EXPOSURE
    if risk.var95 > 0.10:
        return DecisionType.ADD_COLLATERAL
    if risk.current_drawdown > 0.15:
        return DecisionType.REDUCE_EXPOSURE
    if risk.relative_uncertainty > 0.02:
        return DecisionType.INCREASE_STABLE
    if forecast.expected_value > forecast.lower_bound * 1.05 and risk.var95 < 0.05:
        return DecisionType.TAKE_PROFIT
    return DecisionType.HOLD


def calculate_data_quality(
    forecast: ForecastResult, risk: RiskMetrics, price_quality: PriceQuality
) -> float:
    """Data quality score in [0, 100]."""
    score = 100.0
    if price_quality.is_stale:
        score -= 30
    score -= min(30.0, price_quality.relative_uncertainty * 3000)
    score -= min(20.0, risk.volatility * 40)
    if forecast.input_data_points < 20:
        score -= 20
    return max(0.0, score)


def calculate_probability_of_loss(forecast: ForecastResult, position_value: float) -> float:
    """P(price < 0) under a normal with sigma = error_margin / 1.96."""
    if position_value == 0:
        return 0.0

    sigma = forecast.error_margin / 1.96
    if sigma == 0:
        return 1.0 if forecast.expected_value < 0 else 0.0

    z = (0 - forecast.expected_value) / sigma
    return normal_cdf_erf(z)


def determine_urgency(risk: RiskMetrics, prob_loss: float) -> Urgency:
    if risk.var95 > 0.15 or prob_loss > 0.3:
        return Urgency.CRITICAL
    if risk.var95 > 0.10 or prob_loss > 0.2:
        return Urgency.HIGH
    if risk.var95 > 0.05 or prob_loss > 0.1:
        return Urgency.MEDIUM
    return Urgency.LOW


def calculate_confidence_score(
    data_quality: float, forecast: ForecastResult, risk: RiskMetrics
) -> int:
    """Data quality less forecast-error and volatility penalties, in [0, 100]."""
    score = data_quality

    if forecast.expected_value > 0:
        error_pct = forecast.error_margin / forecast.expected_value
        score -= min(20.0, error_pct * 100)
    else:
        score -= 20

    score -= min(20.0, risk.volatility * 40)
    return int(max(0, min(100, math.floor(score + 0.5))))


def build_suggested_action(
    decision_type: DecisionType,
    position_value: float,
    risk: RiskMetrics,
    stablecoin: str = "USDC",
) -> SuggestedAction:
    if decision_type is DecisionType.REDUCE_EXPOSURE:
        return SuggestedAction(
            type=ActionType.SELL,
            amount=position_value * 0.2,
            reasoning=(
                f"Reduce exposure due to high volatility ({risk.volatility * 100:.1f}%) "
                "and unfavorable forecast"
            ),
        )
    if decision_type is DecisionType.INCREASE_STABLE:
        return SuggestedAction(
            type=ActionType.SWAP,
            amount=position_value * 0.3,
            target_asset=stablecoin,
            reasoning=(
                f"Move to stablecoins due to high uncertainty "
                f"({risk.relative_uncertainty * 100:.2f}%)"
            ),
        )
    if decision_type is DecisionType.ADD_COLLATERAL:
        return SuggestedAction(
            type=ActionType.DEPOSIT,
            amount=position_value * risk.var95 * 1.5,
            reasoning=f"Add collateral to cover VaR exposure ({risk.var95 * 100:.1f}%)",
        )
    if decision_type is DecisionType.TAKE_PROFIT:
        return SuggestedAction(
            type=ActionType.SELL,
            amount=position_value * 0.1,
            reasoning="Take partial profits given favorable forecast",
        )
    return SuggestedAction(
        type=ActionType.HOLD,
        amount=0.0,
        reasoning="No action required based on current risk profile",
    )


def generate_alternatives(
    decision_type: DecisionType, risk: RiskMetrics, stablecoin: str = "USDC"
) -> tuple[Alternative, ...]:
    alternatives: list[Alternative] = []
    if decision_type is not DecisionType.HOLD:
        alternatives.append(
            Alternative(DecisionType.HOLD, "Maintain current position and monitor", 60)
        )
    if decision_type is not DecisionType.REDUCE_EXPOSURE and risk.var95 > 0.05:
        alternatives.append(
            Alternative(DecisionType.REDUCE_EXPOSURE, "Reduce position size by 10%", 70)
        )
    if decision_type is not DecisionType.INCREASE_STABLE and risk.volatility > 0.3:
        alternatives.append(
            Alternative(DecisionType.INCREASE_STABLE, f"Convert 50% to {stablecoin}", 65)
        )
    return tuple(alternatives)


def describe_decision(
    decision_type: DecisionType, forecast: ForecastResult, risk: RiskMetrics
) -> str:
    fc = format_forecast(forecast)
    rk = format_risk_metrics(risk)

    if decision_type is DecisionType.REDUCE_EXPOSURE:
        return (
            f"High risk environment detected. Volatility at {rk['volatility']} with VaR of "
            f"{rk['var95']}. Forecast shows {fc['expected']} with wide confidence interval."
        )
    if decision_type is DecisionType.INCREASE_STABLE:
        return (
            f"Market uncertainty elevated ({risk.relative_uncertainty * 100:.2f}%). "
            "Consider reducing volatile asset exposure."
        )
    if decision_type is DecisionType.ADD_COLLATERAL:
        return (
            f"Position at risk. VaR {rk['var95']} indicates potential for significant "
            "losses. Additional collateral recommended."
        )
    if decision_type is DecisionType.TAKE_PROFIT:
        return (
            f"Favorable conditions for profit-taking. Forecast at {fc['expected']} "
            f"with manageable risk ({rk['var95']} VaR)."
        )
    return (
        f"Current position appropriate given forecast ({fc['expected']}) "
        f"and risk profile ({rk['volatility']} volatility)."
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decide(
    forecast: ForecastResult,
    risk: RiskMetrics,
    position_value: float,
    price_quality: PriceQuality,
    *,
    symbol: str = "",
    stablecoin: str = "USDC",
    now_ms: int | None = None,
) -> DecisionRecommendation:
    """Generate a recommendation from a forecast, risk metrics and price quality.

    Args:
        forecast: Forecast for the position's asset.
        risk: Risk metrics for the position.
        position_value: Position value in USD.
        price_quality: Live staleness and relative uncertainty reading.
        symbol: Asset symbol, carried into the recommendation.
        stablecoin: Target asset for stablecoin swaps.
        now_ms: Generation timestamp; defaults to the current time.

    Returns:
        DecisionRecommendation snapshot.
    """
    generated_at = now_ms if now_ms is not None else _now_ms()

    data_quality = calculate_data_quality(forecast, risk, price_quality)
    decision_type = determine_decision_type(forecast, risk)
    prob_loss = calculate_probability_of_loss(forecast, position_value)

    if risk.var95 > 0:
        recommended_max = position_value * MAX_ACCEPTABLE_LOSS_PCT / risk.var95
    else:
        recommended_max = position_value

    recommendation = DecisionRecommendation(
        id=f"DEC-{generated_at}-{_short_id()}",
        symbol=symbol,
        type=decision_type,
        title=DECISION_TITLES[decision_type],
        description=describe_decision(decision_type, forecast, risk),
        confidence_score=calculate_confidence_score(data_quality, forecast, risk),
        urgency=determine_urgency(risk, prob_loss),
        justification=Justification(
            forecast_expected=forecast.expected_value,
            forecast_lower=forecast.lower_bound,
            forecast_upper=forecast.upper_bound,
            volatility=risk.volatility,
            var95=risk.var95,
            max_drawdown=risk.max_drawdown,
            data_quality=data_quality,
        ),
        risk_assessment=RiskAssessment(
            worst_case_loss=position_value * risk.cvar95,
            worst_case_loss_pct=risk.cvar95,
            probability_of_loss=prob_loss,
            recommended_max_position=recommended_max,
        ),
        suggested_action=build_suggested_action(decision_type, position_value, risk, stablecoin),
        alternatives=generate_alternatives(decision_type, risk, stablecoin),
        generated_at=generated_at,
    )

    logger.info(
        "decision_generated",
        decision_id=recommendation.id,
        symbol=symbol,
        decision_type=decision_type.value,
        urgency=recommendation.urgency.value,
        confidence=recommendation.confidence_score,
    )
    return recommendation


def generate_risk_certificate(
    symbol: str,
    forecast: ForecastResult,
    risk: RiskMetrics,
    position_value: float,
    decision: DecisionRecommendation,
    current_price: float | None = None,
    now_ms: int | None = None,
    version: str = CERTIFICATE_VERSION,
) -> RiskCertificate:
    """Assemble the audit certificate for a recommendation.

    ``current_price`` falls back to the forecast's expected value when the
    caller has no live quote.
    """
    generated_at = now_ms if now_ms is not None else _now_ms()

    certificate = RiskCertificate(
        certificate_id=f"CERT-{generated_at}-{_short_id()}",
        generated_at=generated_at,
        version=version,
        inputs=CertificateInputs(
            asset=symbol,
            current_price=current_price if current_price is not None else forecast.expected_value,
            position_value=position_value,
            forecast_horizon=forecast.forecast_horizon,
            confidence_level=forecast.confidence_level,
            data_points=forecast.input_data_points,
        ),
        model=CertificateModel(
            name=forecast.model.value,
            parameters=dict(forecast.model_params),
            formula=model_formula(forecast.model),
        ),
        outputs=CertificateOutputs(
            forecast_expected=forecast.expected_value,
            forecast_lower=forecast.lower_bound,
            forecast_upper=forecast.upper_bound,
            forecast_error_margin=forecast.error_margin,
            volatility=risk.volatility,
            var95=risk.var95,
            var99=risk.var99,
            cvar95=risk.cvar95,
            max_drawdown=risk.max_drawdown,
            recommendation=decision.title,
            confidence=decision.confidence_score,
            worst_case=decision.risk_assessment.worst_case_loss,
        ),
        assumptions=CERTIFICATE_ASSUMPTIONS,
        limitations=CERTIFICATE_LIMITATIONS,
    )
    logger.debug("certificate_issued", certificate_id=certificate.certificate_id, symbol=symbol)
    return certificate


def format_risk_certificate(cert: RiskCertificate) -> str:
    """Multi-line plain-text rendering of a certificate for audit logs."""
    generated = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(cert.generated_at / 1000))
    inputs = cert.inputs
    out = cert.outputs

    lines = [
        "RISK CERTIFICATE",
        "================",
        f"ID: {cert.certificate_id}",
        f"Generated: {generated}",
        f"Version: {cert.version}",
        "",
        "INPUTS",
        "------",
        f"Asset: {inputs.asset}",
        f"Position Value: ${inputs.position_value:,.2f}",
        f"Forecast Horizon: {inputs.forecast_horizon:g} days",
        f"Confidence Level: {inputs.confidence_level * 100:.0f}%",
        f"Data Points: {inputs.data_points}",
        "",
        "MODEL",
        "-----",
        f"Name: {cert.model.name}",
        f"Formula: {cert.model.formula}",
        "",
        "OUTPUTS",
        "-------",
        f"Forecast Expected: ${out.forecast_expected:.2f}",
        f"Forecast Range: ${out.forecast_lower:.2f} - ${out.forecast_upper:.2f}",
        f"Volatility: {out.volatility * 100:.2f}%",
        f"VaR 95%: {out.var95 * 100:.2f}%",
        f"CVaR 95%: {out.cvar95 * 100:.2f}%",
        f"Max Drawdown: {out.max_drawdown * 100:.2f}%",
        "",
        "DECISION",
        "--------",
        f"Recommendation: {out.recommendation}",
        f"Confidence: {out.confidence}%",
        f"Worst Case: ${out.worst_case:,.2f}",
        "",
        "ASSUMPTIONS",
        "-----------",
        *(f"• {a}" for a in cert.assumptions),
        "",
        "LIMITATIONS",
        "-----------",
        *(f"• {lim}" for lim in cert.limitations),
    ]

    if cert.is_verified:
        lines += [
            "",
            "VERIFICATION",
            "------------",
            f"Verified By: {cert.verified_by}",
            f"Verified At: {cert.verified_at}",
            f"Reasoning: {cert.approval_reasoning or '-'}",
        ]
    return "\n".join(lines)
