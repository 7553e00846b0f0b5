"""Human-in-the-loop approval of decision recommendations.

A DecisionWorkflow pairs one recommendation with its certificate. It starts
PENDING and is resolved exactly once, by approval or rejection; resolution
stamps the certificate's verification fields. There is no undo.
"""

import threading
import time
from enum import Enum

from riskdesk.decision.models import DecisionRecommendation, RiskCertificate
from riskdesk.exceptions import DecisionAlreadyResolvedError, DecisionNotFoundError
from riskdesk.logging import get_logger

logger = get_logger(__name__)


class DecisionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionWorkflow:
    """Tracks the approval state of one recommendation/certificate pair."""

    def __init__(self, recommendation: DecisionRecommendation, certificate: RiskCertificate) -> None:
        self.recommendation = recommendation
        self.certificate = certificate
        self.status = DecisionStatus.PENDING
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self.recommendation.id

    def approve(
        self,
        reasoning: str | None = None,
        verified_by: str = "user",
        now_ms: int | None = None,
    ) -> RiskCertificate:
        """Approve the recommendation and stamp the certificate."""
        return self._resolve(DecisionStatus.APPROVED, reasoning, verified_by, now_ms)

    def reject(
        self,
        reasoning: str | None = None,
        verified_by: str = "user",
        now_ms: int | None = None,
    ) -> RiskCertificate:
        """Reject the recommendation and stamp the certificate."""
        return self._resolve(DecisionStatus.REJECTED, reasoning, verified_by, now_ms)

    def _resolve(
        self,
        status: DecisionStatus,
        reasoning: str | None,
        verified_by: str,
        now_ms: int | None,
    ) -> RiskCertificate:
        with self._lock:
            if self.status is not DecisionStatus.PENDING:
                raise DecisionAlreadyResolvedError(
                    f"Decision {self.id} already {self.status.value}"
                )
            at_ms = now_ms if now_ms is not None else int(time.time() * 1000)
            self.certificate.record_verification(verified_by, reasoning, at_ms)
            self.status = status

        logger.info(
            "certificate_verified",
            decision_id=self.id,
            certificate_id=self.certificate.certificate_id,
            status=status.value,
            verified_by=verified_by,
        )
        return self.certificate

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "id": self.id,
            "status": self.status.value,
            "recommendation": self.recommendation.to_dict(),
            "certificate": self.certificate.to_dict(),
        }


class DecisionRegistry:
    """In-memory workflows keyed by recommendation id.

    Pending workflows are always kept. Once more than ``max_resolved``
    approved or rejected workflows are held, the oldest registered ones are
    dropped on the next registration.
    """

    def __init__(self, max_resolved: int = 500) -> None:
        self._workflows: dict[str, DecisionWorkflow] = {}
        self._max_resolved = max_resolved
        self._lock = threading.Lock()

    def register(
        self, recommendation: DecisionRecommendation, certificate: RiskCertificate
    ) -> DecisionWorkflow:
        workflow = DecisionWorkflow(recommendation, certificate)
        with self._lock:
            self._evict_resolved()
            self._workflows[workflow.id] = workflow
        return workflow

    def _evict_resolved(self) -> None:
        resolved = [
            decision_id
            for decision_id, w in self._workflows.items()
            if w.status is not DecisionStatus.PENDING
        ]
        excess = len(resolved) - self._max_resolved
        for decision_id in resolved[:max(excess, 0)]:
            del self._workflows[decision_id]
        if excess > 0:
            logger.debug("resolved_decisions_evicted", count=excess)

    def get(self, decision_id: str) -> DecisionWorkflow:
        """Return the workflow for ``decision_id``.

        Raises:
            DecisionNotFoundError: If the id is unknown.
        """
        with self._lock:
            workflow = self._workflows.get(decision_id)
        if workflow is None:
            raise DecisionNotFoundError(f"Unknown decision: {decision_id}")
        return workflow

    def pending(self) -> list[DecisionWorkflow]:
        with self._lock:
            return [w for w in self._workflows.values() if w.status is DecisionStatus.PENDING]

    def __len__(self) -> int:
        return len(self._workflows)
