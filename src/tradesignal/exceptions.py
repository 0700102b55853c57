"""Typed error taxonomy for vendor access and signal computation.

Vendor failures are classified once, at the VendorClient boundary, into the
classes below. Callers branch on type (or on ``retryable``), never on
message text.
"""


class TradeSignalError(Exception):
    """Base exception for all tradesignal errors."""


class VendorError(TradeSignalError):
    """A vendor call failed.

    Attributes:
        vendor: Name of the vendor that produced the failure.
        status: HTTP status code when the failure came with one.
        retryable: Whether the same call may succeed if repeated later.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        vendor: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.vendor = vendor
        self.status = status


class AuthError(VendorError):
    """Credentials rejected (HTTP 401/403). Fatal; never retried."""


class RateLimitError(VendorError):
    """Vendor throttled the call (HTTP 429 or a quota message)."""

    retryable = True


class QuotaExhaustedError(RateLimitError):
    """The locally tracked daily call quota is used up.

    Waiting seconds will not help, so it is not retried.
    """

    retryable = False


class NetworkError(VendorError):
    """Connectivity failure, timeout, or a 5xx response."""

    retryable = True


class DataUnavailableError(VendorError):
    """The symbol/timeframe combination yields no data."""


class ParseError(VendorError):
    """The vendor payload was malformed or missing required fields."""
