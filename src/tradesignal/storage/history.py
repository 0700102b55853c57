"""Date-keyed journal of daily price snapshots per symbol.

Each symbol's records live under ``{prefix}_{symbol}`` as a JSON array,
oldest first, at most one record per calendar day and at most
``max_days`` records. Used as a fallback price series when the vendor's
historical endpoint returns nothing.
"""

import json
from datetime import date, datetime
from typing import Any

from tradesignal.logging import get_logger
from tradesignal.models import HistoryRecord, Quote
from tradesignal.storage.kv import PersistentStore

logger = get_logger(__name__)


def _encode(record: HistoryRecord) -> dict[str, Any]:
    return {
        "date": record.date.isoformat(),
        "price": record.price,
        "change": record.change,
        "change_percent": record.change_percent,
        "high": record.high,
        "low": record.low,
        "open": record.open,
        "previous_close": record.previous_close,
        "timestamp": record.timestamp.isoformat() if record.timestamp else None,
    }


def _decode(raw: dict[str, Any]) -> HistoryRecord:
    return HistoryRecord(
        date=date.fromisoformat(raw["date"]),
        price=float(raw["price"]),
        change=raw.get("change"),
        change_percent=raw.get("change_percent"),
        high=raw.get("high"),
        low=raw.get("low"),
        open=raw.get("open"),
        previous_close=raw.get("previous_close"),
        timestamp=(
            datetime.fromisoformat(raw["timestamp"]) if raw.get("timestamp") else None
        ),
    )


class HistoryStore:
    """Upsert/read/clear daily snapshots on top of a PersistentStore.

    Args:
        store: Durable key-value backend.
        prefix: Key prefix; the full key is ``f"{prefix}_{symbol}"``.
        max_days: Retention, in records (one record per day).
    """

    def __init__(
        self,
        store: PersistentStore,
        prefix: str = "stock_price_history",
        max_days: int = 90,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._max_days = max_days

    def _key(self, symbol: str) -> str:
        return f"{self._prefix}_{symbol}"

    async def read(self, symbol: str) -> list[HistoryRecord]:
        """Return the stored records for ``symbol``, oldest first.

        An unreadable value is logged and treated as empty history.
        """
        raw = await self._store.get(self._key(symbol))
        if raw is None:
            return []
        try:
            records = [_decode(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError):
            logger.warning("history_decode_failed", symbol=symbol, exc_info=True)
            return []
        return sorted(records, key=lambda r: r.date)

    async def upsert(self, symbol: str, record: HistoryRecord) -> list[HistoryRecord]:
        """Insert ``record`` or replace the record for the same day.

        Re-sorts by date and drops the oldest records past ``max_days``.
        Returns the stored list.
        """
        history = [r for r in await self.read(symbol) if r.date != record.date]
        history.append(record)
        history.sort(key=lambda r: r.date)
        if len(history) > self._max_days:
            history = history[len(history) - self._max_days :]

        await self._store.set(
            self._key(symbol), json.dumps([_encode(r) for r in history])
        )
        logger.debug("history_saved", symbol=symbol, days=len(history))
        return history

    async def record_quote(
        self, symbol: str, quote: Quote, day: date, at: datetime | None = None
    ) -> list[HistoryRecord]:
        """Store ``quote`` as the snapshot for ``day``."""
        return await self.upsert(
            symbol,
            HistoryRecord(
                date=day,
                price=quote.price,
                change=quote.change,
                change_percent=quote.change_percent,
                high=quote.high,
                low=quote.low,
                open=quote.open,
                previous_close=quote.previous_close,
                timestamp=at or quote.fetched_at,
            ),
        )

    async def clear(self, symbol: str | None = None) -> None:
        """Remove one symbol's history, or every symbol's when None."""
        if symbol is not None:
            await self._store.remove(self._key(symbol))
            logger.info("history_cleared", symbol=symbol)
            return
        keys = await self._store.keys(f"{self._prefix}_")
        for key in keys:
            await self._store.remove(key)
        logger.info("history_cleared_all", symbols=len(keys))

    async def stats(self, symbol: str) -> dict:
        """Count and date range of the stored records for ``symbol``."""
        history = await self.read(symbol)
        return {
            "count": len(history),
            "first_date": history[0].date if history else None,
            "last_date": history[-1].date if history else None,
            "last_price": history[-1].price if history else None,
        }

    async def all_stats(self) -> dict[str, dict]:
        """``stats`` for every symbol that has stored history."""
        marker = f"{self._prefix}_"
        result = {}
        for key in await self._store.keys(marker):
            symbol = key[len(marker) :]
            result[symbol] = await self.stats(symbol)
        return result
