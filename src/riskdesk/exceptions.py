"""Custom exceptions for riskdesk.

Insufficient data is never an exception: calculators return None instead.
The exceptions below signal programming or workflow errors and live here
to avoid circular imports between modules.
"""


class RiskDeskError(Exception):
    """Base exception for all riskdesk errors."""


class UnsupportedTokenError(RiskDeskError):
    """Raised when a token symbol or feed id is not in the supported registry."""


class CertificateAlreadyVerifiedError(RiskDeskError):
    """Raised when a risk certificate's verification fields are set twice."""


class DecisionAlreadyResolvedError(RiskDeskError):
    """Raised when a pending decision is approved or rejected a second time."""


class DecisionNotFoundError(RiskDeskError):
    """Raised when a decision id is not known to the registry."""
