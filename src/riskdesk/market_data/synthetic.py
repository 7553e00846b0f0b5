"""Synthetic oracle source for running the dashboard without a network feed.

Produces Pyth-style payloads from a geometric random walk continuing each
symbol's last stored price. It satisfies the ``PriceSource`` contract of
PriceFeedMonitor and is wired in by main.py.
"""

import math
import random
import time

from riskdesk.config import HistorySettings
from riskdesk.market_data.history import MarketHistory
from riskdesk.market_data.tokens import get_feed_id

_SECONDS_PER_YEAR = 365 * 86_400
_EXPO = -8


class SyntheticPriceSource:
    """Async callable yielding one random-walk feed payload per configured symbol.

    Args:
        store: History store; each walk continues from the latest stored price.
        settings: Symbols, starting prices and annualized volatility/drift.
        poll_interval: Seconds between calls, used as the walk's time step.
        confidence_ratio: Oracle confidence as a fraction of price.
        rng: Random generator; pass a seeded one for reproducible walks.
    """

    def __init__(
        self,
        store: MarketHistory,
        settings: HistorySettings,
        poll_interval: float,
        confidence_ratio: float = 0.0005,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._dt = poll_interval / _SECONDS_PER_YEAR
        self._confidence_ratio = confidence_ratio
        self._rng = rng or random.Random()

    def _next_price(self, symbol: str, initial_price: float) -> float:
        prices = self._store.prices(symbol)
        last = prices[-1] if prices else initial_price
        shock = self._rng.gauss(0.0, 1.0)
        vol = self._settings.synthetic_volatility
        drift = self._settings.synthetic_drift
        return last * math.exp(drift * self._dt + vol * math.sqrt(self._dt) * shock)

    async def __call__(self) -> list[dict]:
        publish_time = int(time.time())
        feeds: list[dict] = []
        for symbol, initial_price in self._settings.synthetic_prices.items():
            price = self._next_price(symbol, initial_price)
            feeds.append({
                "id": get_feed_id(symbol),
                "price": {
                    "price": str(round(price / 10.0 ** _EXPO)),
                    "conf": str(round(price * self._confidence_ratio / 10.0 ** _EXPO)),
                    "expo": _EXPO,
                    "publishTime": publish_time,
                },
            })
        return feeds
