"""FastAPI application factory for the signal API."""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradesignal.api import routes
from tradesignal.exceptions import (
    AuthError,
    DataUnavailableError,
    NetworkError,
    ParseError,
    RateLimitError,
    TradeSignalError,
    VendorError,
)
from tradesignal.logging import get_logger

logger = get_logger(__name__)

#: Typed error -> HTTP status. First matching class wins.
ERROR_STATUS: tuple[tuple[type[TradeSignalError], int], ...] = (
    (AuthError, 401),
    (RateLimitError, 429),
    (DataUnavailableError, 404),
    (ParseError, 502),
    (NetworkError, 503),
)


def status_for(error: TradeSignalError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


async def _handle_tradesignal_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TradeSignalError)
    status = status_for(exc)
    logger.warning(
        "api_request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status=status,
    )
    return JSONResponse(
        status_code=status,
        content={
            "error": type(exc).__name__,
            "message": str(exc),
            "vendor": exc.vendor if isinstance(exc, VendorError) else None,
        },
    )


def create_app(lifespan: Any = None) -> FastAPI:
    """Create the API application.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
            main.py uses it to wire ``app.state.service`` and
            ``app.state.watcher``.
    """
    app = FastAPI(title="Trade Signal API", lifespan=lifespan)

    app.state.service = None
    app.state.watcher = None

    app.add_exception_handler(TradeSignalError, _handle_tradesignal_error)
    app.include_router(routes.router, prefix="/api")

    return app
