"""Entry point for the risk desk service.

Wires the history store, price feed monitor and FastAPI dashboard together.
When the dashboard is enabled (default), the feed monitor and the API share
a single asyncio event loop via uvicorn's programmatic API and FastAPI's
lifespan context manager.

Component wiring order (in _build_components):
1. MarketHistory (rolling price windows)
2. Synthetic history seeding (when HISTORY_SEED_SYNTHETIC is true)
3. SyntheticPriceSource (stand-in oracle source)
4. PriceFeedMonitor (polls the source into the store)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from riskdesk.config import AppSettings
from riskdesk.logging import get_logger, setup_logging
from riskdesk.market_data.feed_monitor import PriceFeedMonitor
from riskdesk.market_data.history import MarketHistory
from riskdesk.market_data.synthetic import SyntheticPriceSource


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the store and feed monitor from settings."""
    logger = get_logger("riskdesk.main")

    store = MarketHistory(
        default_capacity=settings.history.default_capacity,
        extended_capacity=settings.history.extended_capacity,
    )

    if settings.history.seed_synthetic:
        for symbol, initial_price in settings.history.synthetic_prices.items():
            store.seed_synthetic(
                symbol,
                initial_price,
                days=settings.history.synthetic_days,
                volatility=settings.history.synthetic_volatility,
                drift=settings.history.synthetic_drift,
            )
        logger.info("history_seeded", symbols=list(settings.history.synthetic_prices))

    source = SyntheticPriceSource(store, settings.history, settings.feed.poll_interval)
    feed_monitor = PriceFeedMonitor(source, store, settings.feed)

    return {
        "store": store,
        "feed_monitor": feed_monitor,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the feed monitor on startup and stop it on shutdown."""
    logger = get_logger("riskdesk.main")
    feed_monitor: PriceFeedMonitor = app.state.components["feed_monitor"]

    app.state.feed_monitor = feed_monitor
    await feed_monitor.start()
    logger.info("lifespan_started")

    yield

    await feed_monitor.stop()
    logger.info("riskdesk_stopped")


async def _run_headless(feed_monitor: PriceFeedMonitor) -> None:
    """Poll prices without a web server until SIGINT/SIGTERM."""
    logger = get_logger("riskdesk.main")
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await feed_monitor.start()
    try:
        await stop_event.wait()
    finally:
        await feed_monitor.stop()
        logger.info("riskdesk_stopped")


async def run() -> None:
    """Run the risk desk.

    With DASHBOARD_ENABLED=true (default) the API is served by uvicorn and
    the lifespan manages the feed monitor. Otherwise only the feed monitor
    runs.
    """
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("riskdesk.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from riskdesk.dashboard.app import create_dashboard_app

        app = create_dashboard_app(
            lifespan=lifespan, settings=settings, store=components["store"]
        )
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level=settings.log_level.lower(),
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        logger.info("starting_without_dashboard", poll_interval=settings.feed.poll_interval)
        await _run_headless(components["feed_monitor"])


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
