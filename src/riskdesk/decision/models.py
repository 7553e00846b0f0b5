"""Decision recommendation and risk certificate data models."""

from dataclasses import asdict, dataclass, field
from enum import Enum

from riskdesk.exceptions import CertificateAlreadyVerifiedError


class DecisionType(str, Enum):
    """Recommended action classes, in no particular order."""

    HOLD = "hold"
    REDUCE_EXPOSURE = "reduce_exposure"
    INCREASE_STABLE = "increase_stable"
    TAKE_PROFIT = "take_profit"
    ADD_COLLATERAL = "add_collateral"


class Urgency(str, Enum):
    """How soon the recommendation should be acted on."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActionType(str, Enum):
    """Concrete action attached to a recommendation."""

    SELL = "sell"
    SWAP = "swap"
    DEPOSIT = "deposit"
    HOLD = "hold"


@dataclass(frozen=True)
class Justification:
    """Numbers the recommendation was derived from."""

    forecast_expected: float
    forecast_lower: float
    forecast_upper: float
    volatility: float
    var95: float
    max_drawdown: float
    data_quality: float  # 0-100


@dataclass(frozen=True)
class RiskAssessment:
    """Downside figures for the current position."""

    worst_case_loss: float  # USD, position x CVaR95
    worst_case_loss_pct: float
    probability_of_loss: float
    recommended_max_position: float


@dataclass(frozen=True)
class SuggestedAction:
    """Action parameters for the chosen decision type."""

    type: ActionType
    amount: float
    reasoning: str
    target_asset: str | None = None


@dataclass(frozen=True)
class Alternative:
    """A secondary option offered alongside the main recommendation."""

    type: DecisionType
    description: str
    confidence_score: int


@dataclass(frozen=True)
class DecisionRecommendation:
    """Immutable snapshot of a classified decision with full numerical backing."""

    id: str
    symbol: str
    type: DecisionType
    title: str
    description: str
    confidence_score: int  # 0-100
    urgency: Urgency
    justification: Justification
    risk_assessment: RiskAssessment
    suggested_action: SuggestedAction
    alternatives: tuple[Alternative, ...]
    generated_at: int  # ms

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        data = asdict(self)
        data["type"] = self.type.value
        data["urgency"] = self.urgency.value
        data["suggested_action"]["type"] = self.suggested_action.type.value
        data["alternatives"] = [
            {**asdict(alt), "type": alt.type.value} for alt in self.alternatives
        ]
        return data


# ---------------------------------------------------------------------------
# Risk certificate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateInputs:
    asset: str
    current_price: float
    position_value: float
    forecast_horizon: float
    confidence_level: float
    data_points: int


@dataclass(frozen=True)
class CertificateModel:
    name: str
    parameters: dict[str, float]
    formula: str


@dataclass(frozen=True)
class CertificateOutputs:
    forecast_expected: float
    forecast_lower: float
    forecast_upper: float
    forecast_error_margin: float
    volatility: float
    var95: float
    var99: float
    cvar95: float
    max_drawdown: float
    recommendation: str
    confidence: int
    worst_case: float


@dataclass
class RiskCertificate:
    """Versioned audit snapshot of every input and output of a decision.

    Everything except the verification fields is fixed at issue time. The
    verification fields are written once through ``record_verification``.
    """

    certificate_id: str
    generated_at: int
    version: str
    inputs: CertificateInputs
    model: CertificateModel
    outputs: CertificateOutputs
    assumptions: tuple[str, ...]
    limitations: tuple[str, ...]
    verified_by: str | None = field(default=None)
    verified_at: int | None = field(default=None)
    approval_reasoning: str | None = field(default=None)

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None

    def record_verification(self, verified_by: str, reasoning: str | None, at_ms: int) -> None:
        """Stamp the human verification fields.

        Raises:
            CertificateAlreadyVerifiedError: If the certificate was already verified.
        """
        if self.is_verified:
            raise CertificateAlreadyVerifiedError(
                f"Certificate {self.certificate_id} already verified by {self.verified_by}"
            )
        self.verified_by = verified_by
        self.verified_at = at_ms
        self.approval_reasoning = reasoning

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        data = asdict(self)
        data["assumptions"] = list(self.assumptions)
        data["limitations"] = list(self.limitations)
        return data
