"""Price-quality processing for oracle feed payloads.

Converts raw Pyth-style price feeds (integer mantissa + exponent, publish
time in seconds) into PriceQuote objects carrying the two gating signals
consumed by the allocator and decision engine:

  - staleness: data_freshness_ms > stale threshold (60s default)
  - uncertainty: confidence / |price| > max uncertainty (1% default)

No network I/O happens here; feeds arrive from the injected price source.
"""

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from riskdesk.market_data.tokens import UNKNOWN_SYMBOL, get_symbol_for_feed_id

if TYPE_CHECKING:
    from riskdesk.market_data.history import MarketHistory

STALE_THRESHOLD_MS = 60_000
MAX_ACCEPTABLE_UNCERTAINTY = 0.01


@dataclass(frozen=True)
class PriceQuote:
    """Processed oracle quote with derived quality metrics."""

    symbol: str
    price: float
    confidence: float
    publish_time: int  # Unix milliseconds
    expo: int
    relative_uncertainty: float  # confidence / |price|
    data_freshness_ms: int  # now - publish_time
    is_stale: bool
    is_valid: bool

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict (infinite uncertainty becomes None)."""
        uncertainty = self.relative_uncertainty
        return {
            "symbol": self.symbol,
            "price": self.price,
            "confidence": self.confidence,
            "publish_time": self.publish_time,
            "expo": self.expo,
            "relative_uncertainty": uncertainty if uncertainty != float("inf") else None,
            "data_freshness_ms": self.data_freshness_ms,
            "is_stale": self.is_stale,
            "is_valid": self.is_valid,
        }


def process_price_feed(
    feed: dict,
    now_ms: int | None = None,
    stale_threshold_ms: int = STALE_THRESHOLD_MS,
    max_uncertainty: float = MAX_ACCEPTABLE_UNCERTAINTY,
) -> PriceQuote:
    """Convert a raw feed payload into a PriceQuote.

    Expected payload shape::

        {"id": "<feed id>",
         "price": {"price": "6512345", "conf": "1234", "expo": -2, "publishTime": 1700000000}}

    Args:
        feed: Raw feed dict.
        now_ms: Reference time for freshness (defaults to now).
        stale_threshold_ms: Freshness above which the quote is stale.
        max_uncertainty: Relative uncertainty above which the quote is invalid.

    Returns:
        PriceQuote with relative uncertainty, freshness and validity flags.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    raw = feed["price"]
    expo = int(raw["expo"])
    scale = 10.0 ** expo
    price = int(raw["price"]) * scale
    confidence = int(raw["conf"]) * scale

    relative_uncertainty = confidence / abs(price) if price != 0 else float("inf")

    publish_time_ms = int(raw["publishTime"]) * 1000
    freshness_ms = now_ms - publish_time_ms
    is_stale = freshness_ms > stale_threshold_ms

    return PriceQuote(
        symbol=get_symbol_for_feed_id(str(feed["id"])),
        price=price,
        confidence=confidence,
        publish_time=publish_time_ms,
        expo=expo,
        relative_uncertainty=relative_uncertainty,
        data_freshness_ms=freshness_ms,
        is_stale=is_stale,
        is_valid=not is_stale and relative_uncertainty <= max_uncertainty,
    )


def check_price_safety(
    quote: PriceQuote,
    max_uncertainty: float = MAX_ACCEPTABLE_UNCERTAINTY,
) -> tuple[bool, str]:
    """Check whether a quote is safe to feed into simulations.

    Returns:
        Tuple of (safe, reason). If safe is True, reason is "".
    """
    if quote.is_stale:
        return False, (
            f"Data is stale ({format_freshness(quote.data_freshness_ms)} old). "
            f"Maximum allowed: 60s"
        )

    if quote.relative_uncertainty > max_uncertainty:
        return False, (
            f"Uncertainty too high ({format_uncertainty(quote.relative_uncertainty)}). "
            f"Maximum allowed: {max_uncertainty * 100:g}%"
        )

    return True, ""


def compute_usd_value(token_amount: float, quote: PriceQuote, token_decimals: int) -> float:
    """USD value of a raw integer token amount with the given decimals."""
    return token_amount * 10.0 ** -token_decimals * quote.price


def record_quotes(store: "MarketHistory", quotes: list[PriceQuote]) -> int:
    """Append quotes for known symbols to the history store.

    Returns:
        Number of quotes recorded (unknown-feed quotes are skipped).
    """
    recorded = 0
    for quote in quotes:
        if quote.symbol == UNKNOWN_SYMBOL:
            continue
        store.append(quote.symbol, quote.price, quote.publish_time, quote.confidence)
        recorded += 1
    return recorded


def format_price(price: float, decimals: int = 2) -> str:
    """Format a USD price, e.g. 65123.4 -> "$65,123.40"."""
    sign = "-" if price < 0 else ""
    return f"{sign}${abs(price):,.{decimals}f}"


def format_uncertainty(uncertainty: float) -> str:
    """Format relative uncertainty as a percentage with 3 decimals."""
    return f"{uncertainty * 100:.3f}%"


def format_freshness(ms: int) -> str:
    """Human-readable age: "< 1s", "12s", "3m", "2h"."""
    if ms < 1000:
        return "< 1s"
    if ms < 60_000:
        return f"{ms // 1000}s"
    if ms < 3_600_000:
        return f"{ms // 60_000}m"
    return f"{ms // 3_600_000}h"
