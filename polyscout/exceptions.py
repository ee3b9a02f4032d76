"""Custom exceptions for the discovery and order engine."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure category reported to callers."""
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    EXCHANGE_REJECTED = "EXCHANGE_REJECTED"
    NOT_CONNECTED = "NOT_CONNECTED"


class EngineError(Exception):
    """Base exception for all engine errors."""
    kind: ErrorKind = ErrorKind.UPSTREAM_UNAVAILABLE


class UpstreamError(EngineError):
    """An upstream API call failed or returned nothing usable."""
    pass


class UpstreamUnavailableError(UpstreamError):
    """Network failure or non-2xx response after retries were exhausted."""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class NotFoundError(UpstreamError):
    """The request was valid but no matching market/condition exists."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"Not found: {what}")


class InvalidParametersError(EngineError, ValueError):
    """Malformed price, size, outcome or condition id."""
    kind = ErrorKind.INVALID_PARAMETERS


class NotConnectedError(EngineError):
    """Operation attempted before connect() or without a configured wallet."""
    kind = ErrorKind.NOT_CONNECTED


class ExchangeRejectedError(EngineError):
    """Order was accepted locally but refused by the exchange."""
    kind = ErrorKind.EXCHANGE_REJECTED

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InsufficientBalanceError(ExchangeRejectedError):
    """Exchange refused the order for lack of funds."""
    pass


class MalformedRecordError(EngineError, ValueError):
    """A single raw market record could not be normalized."""
    kind = ErrorKind.INVALID_PARAMETERS
