#!/usr/bin/env python3
"""
Error taxonomy for the scanner.

Every per-ticker failure is a ScanError subclass with a stable code; the
controller records "<CODE>: <message>" on the ticker's result so rate-limited
failures stay distinguishable from the rest.
"""


class ScanError(Exception):
    """Base class for per-ticker failures."""

    code = "SCAN_ERROR"
    retryable = False

    def __init__(self, message="", ticker=None):
        super().__init__(message)
        self.ticker = ticker

    def describe(self):
        message = str(self) or self.__class__.__name__
        return f"{self.code}: {message}"


class NotFound(ScanError):
    """Upstream has no chart data for the symbol or its dash variant."""
    code = "NOT_FOUND"


class EmptyData(ScanError):
    code = "EMPTY_DATA"


class InsufficientData(ScanError):
    """Aligned series shorter than the longest indicator lookback."""
    code = "INSUFFICIENT_DATA"


class UpstreamError(ScanError):
    """Payload could not be parsed or had an unexpected structure."""
    code = "UPSTREAM_ERROR"


class RateLimited(ScanError):
    code = "API_RATE_LIMIT"
    retryable = True


class NetworkError(ScanError):
    """DNS failure, timeout, connection reset or a 5xx from upstream."""
    code = "NETWORK_ERROR"
    retryable = True


class UserAbort(ScanError):
    """Raised when stop() cancels an in-flight call. Not reported as an error."""
    code = "USER_ABORT"


class SettingsError(ValueError):
    """Malformed analysis settings. Fatal to the caller, never per-ticker."""
