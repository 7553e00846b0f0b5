"""In-memory rolling price history per symbol.

MarketHistory is the single owner of price observations. Every series is a
fixed-capacity FIFO window; readers receive immutable snapshots, never the
underlying buffer. The store is an explicit object created by the entry
point and injected into the risk and forecast engines.

Access to one symbol is serialized by a per-symbol threading.Lock. There is
no ordering guarantee across symbols.
"""

import math
import random
import threading
import time
from collections import deque
from dataclasses import dataclass

from riskdesk.analytics.stats import log_returns, mean, std_dev, variance
from riskdesk.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WINDOW_SIZE = 50
EXTENDED_WINDOW_SIZE = 100

_MS_PER_DAY = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class PricePoint:
    """A single price observation. Immutable once appended."""

    price: float
    timestamp: int  # Unix milliseconds
    confidence: float | None = None


@dataclass(frozen=True)
class AssetTimeSeries:
    """Snapshot of one symbol's rolling window (oldest first)."""

    symbol: str
    capacity: int
    points: tuple[PricePoint, ...]

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "symbol": self.symbol,
            "capacity": self.capacity,
            "points": [
                {"price": p.price, "timestamp": p.timestamp, "confidence": p.confidence}
                for p in self.points
            ],
        }


@dataclass(frozen=True)
class SeriesStatistics:
    """Statistical summary of a symbol's current window."""

    symbol: str
    count: int
    mean: float
    variance: float
    std_dev: float
    min: float
    max: float
    range: float
    latest_price: float
    latest_timestamp: int
    total_return: float  # (last - first) / first
    annualized_volatility: float
    max_drawdown: float
    current_drawdown: float

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "symbol": self.symbol,
            "count": self.count,
            "mean": self.mean,
            "variance": self.variance,
            "std_dev": self.std_dev,
            "min": self.min,
            "max": self.max,
            "range": self.range,
            "latest_price": self.latest_price,
            "latest_timestamp": self.latest_timestamp,
            "total_return": self.total_return,
            "annualized_volatility": self.annualized_volatility,
            "max_drawdown": self.max_drawdown,
            "current_drawdown": self.current_drawdown,
        }


@dataclass(frozen=True)
class RollingStatistic:
    """Mean and standard deviation of one rolling window, stamped at its last point."""

    timestamp: int
    mean: float
    std_dev: float


class _Series:
    """Mutable backing buffer for one symbol. Never leaves the store."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.points: deque[PricePoint] = deque(maxlen=capacity)
        self.lock = threading.Lock()


def compute_drawdown(prices: list[float]) -> tuple[float, float]:
    """Return (max_drawdown, current_drawdown) from one forward pass.

    drawdown_i = (peak - price_i) / peak with a running peak. A step whose
    peak is not positive contributes zero drawdown.

    Args:
        prices: Prices ordered oldest-first.

    Returns:
        Tuple of (max, current). (0.0, 0.0) with fewer than 2 prices.
    """
    if len(prices) < 2:
        return 0.0, 0.0

    peak = prices[0]
    max_dd = 0.0
    dd = 0.0

    for price in prices:
        if price > peak:
            peak = price
        dd = (peak - price) / peak if peak > 0 else 0.0
        if dd > max_dd:
            max_dd = dd

    return max_dd, dd


def points_per_day(timestamps: list[int]) -> float:
    """Estimate sampling frequency as count / span in days (1.0 when undefined)."""
    if len(timestamps) < 2:
        return 1.0

    span_days = (timestamps[-1] - timestamps[0]) / _MS_PER_DAY
    if span_days <= 0:
        return 1.0

    return len(timestamps) / span_days


def annualized_volatility(prices: list[float], timestamps: list[int]) -> float:
    """Stddev of log returns scaled by sqrt(365 * points_per_day).

    Returns 0.0 with fewer than 2 prices or fewer than 2 returns.
    """
    if len(prices) < 2:
        return 0.0

    returns = log_returns(prices)
    if len(returns) < 2:
        return 0.0

    return std_dev(returns) * math.sqrt(365 * points_per_day(timestamps))


class MarketHistory:
    """Rolling per-symbol price windows with FIFO eviction.

    Args:
        default_capacity: Window size for series created on first append.
        extended_capacity: Window size for synthetic-seeded series.
    """

    def __init__(
        self,
        default_capacity: int = DEFAULT_WINDOW_SIZE,
        extended_capacity: int = EXTENDED_WINDOW_SIZE,
    ) -> None:
        self._default_capacity = default_capacity
        self._extended_capacity = extended_capacity
        self._series: dict[str, _Series] = {}
        self._registry_lock = threading.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    def initialize_series(self, symbol: str, capacity: int | None = None) -> None:
        """Create (or replace) an empty series for a symbol."""
        with self._registry_lock:
            self._series[symbol] = _Series(capacity or self._default_capacity)
        logger.debug("series_initialized", symbol=symbol, capacity=capacity or self._default_capacity)

    def append(
        self,
        symbol: str,
        price: float,
        timestamp: int | None = None,
        confidence: float | None = None,
    ) -> None:
        """Append a price point, evicting the oldest point past capacity.

        Creates the series with the default capacity on first use. Prices are
        not validated; the caller owns sign and timestamp ordering.
        """
        if timestamp is None:
            timestamp = int(time.time() * 1000)

        series = self._get_or_create(symbol)
        with series.lock:
            series.points.append(PricePoint(price=price, timestamp=timestamp, confidence=confidence))

    def clear(self) -> None:
        """Drop every series (test reset)."""
        with self._registry_lock:
            self._series.clear()

    def seed_synthetic(
        self,
        symbol: str,
        initial_price: float,
        days: int = 30,
        volatility: float = 0.5,
        drift: float = 0.1,
        now_ms: int | None = None,
        rng: random.Random | None = None,
    ) -> AssetTimeSeries:
        """Seed a fresh extended-capacity series with a daily GBM path.

        dS/S = mu dt + sigma dW with dt = 1/365. Produces days + 1 points, the
        last one stamped at now_ms.

        Args:
            symbol: Asset symbol.
            initial_price: Price of the oldest point.
            days: Number of days of history.
            volatility: Annualized volatility (sigma).
            drift: Annualized expected return (mu).
            now_ms: Timestamp of the newest point (defaults to now).
            rng: Random generator; pass a seeded one for reproducible paths.

        Returns:
            Snapshot of the seeded series.
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        if rng is None:
            rng = random.Random()

        self.initialize_series(symbol, self._extended_capacity)

        dt = 1 / 365
        current_price = initial_price

        for i in range(days, -1, -1):
            self.append(symbol, current_price, now_ms - i * _MS_PER_DAY)
            shock = rng.gauss(0.0, 1.0)
            current_price *= math.exp(drift * dt + volatility * math.sqrt(dt) * shock)

        logger.info("synthetic_history_seeded", symbol=symbol, days=days, initial_price=initial_price)
        return self.series(symbol)  # type: ignore[return-value]

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    def symbols(self) -> list[str]:
        """Return all tracked symbols."""
        with self._registry_lock:
            return list(self._series)

    def capacity(self, symbol: str) -> int | None:
        """Return the window size for a symbol, or None if unknown."""
        series = self._lookup(symbol)
        return series.capacity if series is not None else None

    def points(self, symbol: str) -> tuple[PricePoint, ...]:
        """Snapshot of the current window (empty if the symbol is unknown)."""
        series = self._lookup(symbol)
        if series is None:
            return ()
        with series.lock:
            return tuple(series.points)

    def series(self, symbol: str) -> AssetTimeSeries | None:
        """Snapshot of the full series, or None if the symbol is unknown."""
        series = self._lookup(symbol)
        if series is None:
            return None
        with series.lock:
            return AssetTimeSeries(symbol=symbol, capacity=series.capacity, points=tuple(series.points))

    def prices(self, symbol: str) -> list[float]:
        """Prices in the current window, oldest first."""
        return [p.price for p in self.points(symbol)]

    def timestamps(self, symbol: str) -> list[int]:
        """Timestamps in the current window, oldest first."""
        return [p.timestamp for p in self.points(symbol)]

    def volatility(self, symbol: str) -> float:
        """Frequency-adjusted annualized volatility of the window."""
        points = self.points(symbol)
        return annualized_volatility([p.price for p in points], [p.timestamp for p in points])

    def drawdown(self, symbol: str) -> tuple[float, float]:
        """Return (max_drawdown, current_drawdown) for the window."""
        return compute_drawdown(self.prices(symbol))

    def statistics(self, symbol: str) -> SeriesStatistics | None:
        """Summary statistics, or None with fewer than 2 points."""
        points = self.points(symbol)
        if len(points) < 2:
            return None

        prices = [p.price for p in points]
        timestamps = [p.timestamp for p in points]

        first, last = prices[0], prices[-1]
        total_return = (last - first) / first if first != 0 else 0.0
        max_dd, current_dd = compute_drawdown(prices)
        low, high = min(prices), max(prices)

        return SeriesStatistics(
            symbol=symbol,
            count=len(prices),
            mean=mean(prices),
            variance=variance(prices),
            std_dev=std_dev(prices),
            min=low,
            max=high,
            range=high - low,
            latest_price=last,
            latest_timestamp=timestamps[-1],
            total_return=total_return,
            annualized_volatility=annualized_volatility(prices, timestamps),
            max_drawdown=max_dd,
            current_drawdown=current_dd,
        )

    def rolling_statistics(self, symbol: str, window: int = 20) -> list[RollingStatistic]:
        """Mean/stddev over each trailing window of ``window`` points.

        Returns an empty list when the series is shorter than the window.
        """
        points = self.points(symbol)
        if window <= 0 or len(points) < window:
            return []

        results: list[RollingStatistic] = []
        for i in range(window - 1, len(points)):
            chunk = [p.price for p in points[i - window + 1 : i + 1]]
            results.append(
                RollingStatistic(timestamp=points[i].timestamp, mean=mean(chunk), std_dev=std_dev(chunk))
            )
        return results

    # ──────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────

    def _lookup(self, symbol: str) -> _Series | None:
        with self._registry_lock:
            return self._series.get(symbol)

    def _get_or_create(self, symbol: str) -> _Series:
        with self._registry_lock:
            series = self._series.get(symbol)
            if series is None:
                series = _Series(self._default_capacity)
                self._series[symbol] = series
            return series
