"""Signal computation service and the background watchlist poller."""

from tradesignal.market_data.service import MarketDataService
from tradesignal.market_data.watcher import SignalWatcher

__all__ = ["MarketDataService", "SignalWatcher"]
