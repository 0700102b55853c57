"""Entry point for the trade signal service.

Wires the components together and serves the JSON API under uvicorn, with
the watchlist poller running in the same event loop via FastAPI's lifespan.
With the API disabled, only the poller runs until SIGINT/SIGTERM.

Component wiring order (in _build_components):
1. SqliteStore (durable key-value store, opened here)
2. HistoryStore and ApiCallCounter on top of it
3. VendorClient (Finnhub or Twelve Data)
4. RequestGovernor (cache, dedup, rate limiting)
5. MarketDataService
6. SignalWatcher
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tradesignal.clock import SystemClock
from tradesignal.config import AppSettings
from tradesignal.governor import RequestGovernor
from tradesignal.logging import get_logger, setup_logging
from tradesignal.market_data import MarketDataService, SignalWatcher
from tradesignal.models import SignalChange
from tradesignal.storage import ApiCallCounter, HistoryStore, SqliteStore
from tradesignal.vendor import build_vendor_client


async def _log_signal_change(change: SignalChange) -> None:
    get_logger("tradesignal.main").info(
        "signal_alert",
        symbol=change.symbol,
        mode=change.mode.value,
        previous=change.previous.label.value,
        current=change.current.label.value,
        rationale=change.current.rationale,
    )


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Opens the SQLite store; the vendor session opens lazily on first call.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("tradesignal.main")
    clock = SystemClock()

    store = SqliteStore(settings.storage.db_path)
    await store.connect()

    history = HistoryStore(
        store,
        prefix=settings.storage.history_prefix,
        max_days=settings.storage.max_history_days,
    )
    counter = ApiCallCounter(
        store,
        clock,
        prefix=settings.storage.api_calls_prefix,
        daily_limit=settings.governor.daily_call_limit,
    )

    client = build_vendor_client(settings.vendor)
    key = (
        settings.vendor.twelvedata_api_key
        if settings.vendor.provider == "twelvedata"
        else settings.vendor.finnhub_api_key
    )
    if not key.get_secret_value():
        logger.warning(
            "no_api_key_configured",
            provider=settings.vendor.provider,
            note="Vendor calls will fail with AuthError.",
        )

    governor = RequestGovernor(clock, settings.governor)
    service = MarketDataService(
        client=client,
        governor=governor,
        history=history,
        counter=counter,
        clock=clock,
        retry=settings.retry,
        signal_settings=settings.signal,
        vendor_settings=settings.vendor,
    )
    watcher = SignalWatcher(
        service, clock, settings.watch, on_change=_log_signal_change
    )

    return {
        "store": store,
        "client": client,
        "service": service,
        "watcher": watcher,
    }


async def _shutdown(components: dict[str, Any]) -> None:
    await components["watcher"].stop()
    await components["client"].close()
    await components["store"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Expose components on app.state and run the watcher alongside the API."""
    logger = get_logger("tradesignal.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.service = components["service"]
    app.state.watcher = components["watcher"]

    if settings.watch.enabled:
        await components["watcher"].start()

    logger.info("lifespan_started", provider=settings.vendor.provider)

    yield

    await _shutdown(components)
    logger.info("tradesignal_stopped")


async def run() -> None:
    """Run the service.

    With API_ENABLED=true (default) uvicorn serves the API and handles
    SIGINT/SIGTERM itself. Otherwise the watcher runs until a signal arrives.
    """
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("tradesignal.main")

    components = await _build_components(settings)

    if settings.api.enabled:
        from tradesignal.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_api",
            host=settings.api.host,
            port=settings.api.port,
            provider=settings.vendor.provider,
        )
        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        await uvicorn.Server(config).serve()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info(
        "starting_without_api",
        symbols=len(settings.watch.symbols),
        refresh_interval=settings.watch.refresh_interval,
    )
    try:
        await components["watcher"].start()
        await stop_event.wait()
        logger.info("graceful_shutdown_signal")
    finally:
        await _shutdown(components)
        logger.info("tradesignal_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
