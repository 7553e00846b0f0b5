"""Market data layer -- rolling price history, token registry, quote quality and feed polling."""

from riskdesk.market_data.feed_monitor import PriceFeedMonitor
from riskdesk.market_data.history import (
    AssetTimeSeries,
    MarketHistory,
    PricePoint,
    RollingStatistic,
    SeriesStatistics,
)
from riskdesk.market_data.quotes import PriceQuote, check_price_safety, process_price_feed
from riskdesk.market_data.tokens import SUPPORTED_TOKENS, TokenConfig, get_token_config

__all__ = [
    "AssetTimeSeries",
    "MarketHistory",
    "PriceFeedMonitor",
    "PricePoint",
    "PriceQuote",
    "RollingStatistic",
    "SUPPORTED_TOKENS",
    "SeriesStatistics",
    "TokenConfig",
    "check_price_safety",
    "get_token_config",
    "process_price_feed",
]
