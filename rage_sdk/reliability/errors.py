"""
Error taxonomy for the enrichment core.

Every failure that crosses a resilience layer is represented by a
``RageError`` subclass carrying its kind and whether it may be retried.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classified failure kinds."""
    NETWORK = "network_error"
    TIMEOUT = "timeout_error"
    RATE_LIMIT = "rate_limit"
    SERVER = "server_error"
    AUTH = "auth_error"
    VALIDATION = "validation_error"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.RATE_LIMIT,
    ErrorKind.SERVER,
})


class RageError(Exception):
    """Base error for the enrichment core.

    Instances are created once per raw failure and treated as immutable.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.retryable = self.kind in RETRYABLE_KINDS if retryable is None else retryable
        self.status_code = status_code
        self.retry_after = retry_after
        self.correlation_id = correlation_id
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "message": self.message,
            "status_code": self.status_code,
            "retry_after": self.retry_after,
            "correlation_id": self.correlation_id,
            "cause": type(self.cause).__name__ if self.cause else None,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NetworkError(RageError):
    kind = ErrorKind.NETWORK


class OperationTimeoutError(RageError):
    """Raised when an attempt does not finish before its deadline."""
    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class RateLimitError(RageError):
    kind = ErrorKind.RATE_LIMIT


class ServerError(RageError):
    kind = ErrorKind.SERVER


class AuthenticationError(RageError):
    kind = ErrorKind.AUTH


class ValidationError(RageError):
    kind = ErrorKind.VALIDATION


class ConfigurationError(ValidationError):
    """Invalid or incomplete configuration, raised at construction time."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class CircuitOpenError(RageError):
    """Raised without invoking the operation while a circuit is open."""
    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, message: str, breaker_name: Optional[str] = None, **kwargs):
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.breaker_name = breaker_name


class UnknownError(RageError):
    kind = ErrorKind.UNKNOWN


ERROR_TYPES = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.TIMEOUT: OperationTimeoutError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.AUTH: AuthenticationError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.CIRCUIT_OPEN: CircuitOpenError,
    ErrorKind.UNKNOWN: UnknownError,
}
