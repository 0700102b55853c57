"""JSON endpoints exposing signals, stored history and call usage."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tradesignal.models import (
    AnalysisMode,
    HistoryRecord,
    IndicatorFrame,
    Signal,
    SignalChange,
    SignalResult,
)

router = APIRouter()


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def _frame_to_dict(frame: IndicatorFrame) -> dict[str, Any]:
    return {
        "time": frame.time.isoformat(),
        "price": frame.price,
        "ema20": frame.ema20,
        "rsi": frame.rsi,
        "high": frame.high,
        "low": frame.low,
        "open": frame.open,
        "volume": frame.volume,
    }


def _signal_to_dict(signal: Signal) -> dict[str, str]:
    return {"label": signal.label.value, "rationale": signal.rationale}


def result_to_dict(result: SignalResult, include_series: bool = True) -> dict[str, Any]:
    """JSON-ready view of a SignalResult."""
    body: dict[str, Any] = {
        "symbol": result.symbol,
        "timeframe": result.timeframe,
        "mode": result.mode.value,
        "signal": _signal_to_dict(result.signal),
        "divergence": {
            "kind": result.divergence.kind.value,
            "strength": result.divergence.strength,
        },
        "change_from_extreme": {
            "change_percent": result.change_from_extreme.change_percent,
            "from_high": result.change_from_extreme.from_high,
        },
        "last_updated": result.last_updated.isoformat(),
        "degraded": result.degraded,
        "source": result.source.value,
        "message": result.message,
        "price": result.series[-1].price if result.series else None,
    }
    if result.quote is not None:
        body["quote"] = {
            "price": result.quote.price,
            "change": result.quote.change,
            "change_percent": result.quote.change_percent,
            "high": result.quote.high,
            "low": result.quote.low,
            "open": result.quote.open,
            "previous_close": result.quote.previous_close,
        }
    if include_series:
        body["series"] = [_frame_to_dict(f) for f in result.series]
    return body


def _record_to_dict(record: HistoryRecord) -> dict[str, Any]:
    return {
        "date": record.date.isoformat(),
        "price": record.price,
        "change": record.change,
        "change_percent": record.change_percent,
        "high": record.high,
        "low": record.low,
        "open": record.open,
        "previous_close": record.previous_close,
        "timestamp": _iso(record.timestamp),
    }


def _stats_to_dict(stats: dict) -> dict[str, Any]:
    return {
        "count": stats["count"],
        "first_date": _iso(stats["first_date"]),
        "last_date": _iso(stats["last_date"]),
        "last_price": stats["last_price"],
    }


def _change_to_dict(change: SignalChange) -> dict[str, Any]:
    return {
        "symbol": change.symbol,
        "mode": change.mode.value,
        "previous": _signal_to_dict(change.previous),
        "current": _signal_to_dict(change.current),
        "changed_at": change.changed_at.isoformat(),
    }


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "BadRequest", "message": message})


@router.get("/signal")
async def get_signal(
    request: Request,
    symbol: str,
    timeframe: str = "1day",
    mode: str | None = None,
) -> JSONResponse:
    """Signal, indicator series and degradation flag for one symbol."""
    if mode is not None and mode not in {m.value for m in AnalysisMode}:
        return _bad_request(f"Unknown mode {mode!r}")
    service = request.app.state.service
    result = await service.get_signal(symbol.upper(), timeframe, mode)
    return JSONResponse(content=result_to_dict(result))


@router.get("/history")
async def get_history(request: Request, symbol: str) -> JSONResponse:
    """Stored daily snapshots for ``symbol``, oldest first."""
    records = await request.app.state.service.history.read(symbol.upper())
    return JSONResponse(content=[_record_to_dict(r) for r in records])


@router.delete("/history")
async def clear_history(request: Request, symbol: str | None = None) -> JSONResponse:
    """Remove one symbol's snapshots, or all when no symbol is given."""
    target = symbol.upper() if symbol else None
    await request.app.state.service.history.clear(target)
    return JSONResponse(content={"cleared": target or "all"})


@router.get("/history/stats")
async def get_history_stats(request: Request, symbol: str | None = None) -> JSONResponse:
    """Record count and date range, for one symbol or every stored symbol."""
    history = request.app.state.service.history
    if symbol:
        return JSONResponse(content=_stats_to_dict(await history.stats(symbol.upper())))
    all_stats = await history.all_stats()
    return JSONResponse(content={s: _stats_to_dict(v) for s, v in all_stats.items()})


@router.get("/watchlist")
async def get_watchlist(request: Request) -> JSONResponse:
    """Latest watcher results and the significant changes seen so far."""
    watcher = request.app.state.watcher
    if watcher is None:
        return JSONResponse(
            content={"running": False, "symbols": [], "results": [], "changes": [], "errors": {}}
        )
    return JSONResponse(
        content={
            "running": watcher.is_running,
            "symbols": watcher.symbols,
            "results": [result_to_dict(r, include_series=False) for r in watcher.latest()],
            "changes": [_change_to_dict(c) for c in watcher.recent_changes()],
            "errors": watcher.errors(),
        }
    )


@router.get("/usage")
async def get_usage(request: Request) -> JSONResponse:
    """Today's vendor call count against the daily limit, plus governor state."""
    service = request.app.state.service
    counter = service.counter
    stats = service.governor.stats()
    return JSONResponse(
        content={
            "calls_today": await counter.count(),
            "daily_limit": counter.daily_limit,
            "remaining": await counter.remaining(),
            "governor": {
                "cache_size": stats["cache_size"],
                "in_flight": stats["in_flight"],
                "calls_this_window": stats["calls_this_window"],
            },
        }
    )


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    watcher = request.app.state.watcher
    return JSONResponse(
        content={
            "status": "ok",
            "watcher_running": bool(watcher and watcher.is_running),
        }
    )
