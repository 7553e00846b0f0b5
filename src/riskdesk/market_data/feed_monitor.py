"""Price feed monitor -- polls an injected oracle source into the history store.

The monitor owns no network client. ``source`` is any async callable that
returns a list of raw Pyth-style feed payloads; retry and backoff for the
underlying transport belong to that callable. A failed poll is logged and
the loop continues on the next interval.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from riskdesk.config import PriceFeedSettings
from riskdesk.logging import get_logger
from riskdesk.market_data.history import MarketHistory
from riskdesk.market_data.quotes import PriceQuote, process_price_feed, record_quotes
from riskdesk.market_data.tokens import UNKNOWN_SYMBOL

logger = get_logger(__name__)

PriceSource = Callable[[], Awaitable[list[dict]]]


class PriceFeedMonitor:
    """Polls a price source, caches the latest quote per symbol, records history.

    Args:
        source: Async callable returning raw feed payloads.
        store: History store that receives every processed quote.
        settings: Poll interval and price-quality thresholds.
    """

    def __init__(
        self,
        source: PriceSource,
        store: MarketHistory,
        settings: PriceFeedSettings | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._settings = settings or PriceFeedSettings()
        self._quotes: dict[str, PriceQuote] = {}
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self.last_updated: int | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin polling in the background."""
        if self._running:
            logger.warning("price_feed_monitor_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("price_feed_monitor_started", poll_interval=self._settings.poll_interval)

    async def stop(self) -> None:
        """Stop polling gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_feed_monitor_stopped")

    async def _poll_loop(self) -> None:
        """Main polling loop: fetch feeds, process quotes, update caches."""
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_feed_poll_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._settings.poll_interval)

    async def poll_once(self) -> list[PriceQuote]:
        """Execute a single poll and return the processed quotes."""
        feeds = await self._source()
        now_ms = int(time.time() * 1000)

        quotes: list[PriceQuote] = []
        for feed in feeds:
            try:
                quote = process_price_feed(
                    feed,
                    now_ms=now_ms,
                    stale_threshold_ms=self._settings.stale_threshold_ms,
                    max_uncertainty=self._settings.max_uncertainty,
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("invalid_price_feed", feed_id=feed.get("id") if isinstance(feed, dict) else None)
                continue

            if quote.symbol == UNKNOWN_SYMBOL:
                logger.debug("unknown_price_feed", feed_id=feed.get("id"))
                continue

            self._quotes[quote.symbol] = quote
            quotes.append(quote)

        record_quotes(self._store, quotes)
        self.last_updated = now_ms
        logger.debug("price_quotes_updated", count=len(quotes))
        return quotes

    def get_quote(self, symbol: str) -> PriceQuote | None:
        """Return the latest cached quote for a symbol."""
        return self._quotes.get(symbol)

    def get_all_quotes(self) -> list[PriceQuote]:
        """Return all cached quotes sorted by symbol."""
        return sorted(self._quotes.values(), key=lambda q: q.symbol)
