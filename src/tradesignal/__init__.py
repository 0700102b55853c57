"""Trading signals from rate-limited market data vendors."""

__version__ = "0.1.0"
