"""Cashflow forecast -- near-term wallet balance from dated cash events.

Events are bucketed into daily net flows over a lookback window. The
projection is ``starting_balance + horizon * mean_daily_net`` with an
interval of ``z * std_daily_net * sqrt(horizon)`` and an overdraft
probability from a normal approximation of the aggregate flow.
"""

import math
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field

from riskdesk.analytics.stats import mean, normal_cdf_as, std_dev, threshold_z
from riskdesk.logging import get_logger

logger = get_logger(__name__)

MS_PER_DAY = 86_400_000

CASHFLOW_ASSUMPTIONS: tuple[str, ...] = (
    "Daily net cashflow is approximately stationary over the lookback window.",
    "Aggregate net flow uncertainty scales with sqrt(time).",
    "Overdraft probability assumes a normal distribution for aggregate net flow.",
)


@dataclass(frozen=True)
class CashflowEvent:
    """A dated cash movement. Positive amounts are income, negative are expenses (USD)."""

    timestamp: int
    amount: float
    category: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class CashflowForecastResult:
    """Projected balance with interval and overdraft probability."""

    horizon_days: int
    confidence_level: float
    starting_balance: float
    expected_ending_balance: float
    lower_bound: float
    upper_bound: float
    error_margin: float
    input_days: int
    mean_daily_net: float
    std_daily_net: float
    probability_of_overdraft: float  # P(ending balance < 0)
    assumptions: list[str] = field(default_factory=lambda: list(CASHFLOW_ASSUMPTIONS))

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return asdict(self)


def to_daily_net_flows(
    events: Iterable[CashflowEvent],
    days: int = 30,
    now_ms: int | None = None,
) -> list[float]:
    """Sum signed amounts into ``days`` daily buckets ending at ``now_ms``.

    Events with ``now - days <= timestamp <= now`` are kept; the bucket index
    is clamped to the last day so an event exactly at ``now`` is counted.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    start = now_ms - days * MS_PER_DAY

    buckets = [0.0] * days
    if days <= 0:
        return buckets

    for event in events:
        if event.timestamp < start or event.timestamp > now_ms:
            continue
        idx = min(days - 1, max(0, (event.timestamp - start) // MS_PER_DAY))
        buckets[idx] += event.amount
    return buckets


def forecast_cashflow(
    starting_balance: float,
    events: Iterable[CashflowEvent],
    horizon_days: int = 7,
    lookback_days: int = 30,
    confidence_level: float = 0.95,
    now_ms: int | None = None,
) -> CashflowForecastResult | None:
    """Project the balance ``horizon_days`` ahead.

    Args:
        starting_balance: Current balance in USD.
        events: Cash events in any order.
        horizon_days: Days to project forward.
        lookback_days: Window of history to bucket.
        confidence_level: Interval confidence (banded z).
        now_ms: End of the lookback window; defaults to the current time.

    Returns:
        CashflowForecastResult, or None when every daily bucket is zero.
    """
    daily = to_daily_net_flows(events, lookback_days, now_ms)
    if not any(v != 0 for v in daily):
        logger.debug("cashflow_insufficient_data", lookback_days=lookback_days)
        return None

    mu = mean(daily)
    sigma = std_dev(daily) if len(daily) >= 2 else 0.0

    expected_ending = starting_balance + horizon_days * mu
    scale = sigma * math.sqrt(horizon_days)
    margin = threshold_z(confidence_level) * scale

    if scale > 0:
        p_overdraft = normal_cdf_as((0 - expected_ending) / scale)
    else:
        p_overdraft = 1.0 if expected_ending < 0 else 0.0
    p_overdraft = min(1.0, max(0.0, p_overdraft))

    return CashflowForecastResult(
        horizon_days=horizon_days,
        confidence_level=confidence_level,
        starting_balance=starting_balance,
        expected_ending_balance=expected_ending,
        lower_bound=expected_ending - margin,
        upper_bound=expected_ending + margin,
        error_margin=margin,
        input_days=lookback_days,
        mean_daily_net=mu,
        std_daily_net=sigma,
        probability_of_overdraft=p_overdraft,
    )
