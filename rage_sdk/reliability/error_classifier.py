"""
Error classification for retrieval failures.

Maps raw exceptions (httpx transport errors, HTTP status codes, asyncio
timeouts, connection errors) onto the ``RageError`` taxonomy so the retry
and fallback layers can make decisions from a single ``retryable`` flag.
"""

import asyncio
import re
from typing import Optional, Set

import httpx

from .errors import (
    ERROR_TYPES,
    ErrorKind,
    RageError,
)


class ErrorClassifier:
    """Classifies raw exceptions into typed ``RageError`` instances."""

    # Error patterns for string matching
    ERROR_PATTERNS = {
        'timeout': {
            'patterns': ['timeout', 'timed out', 'deadline exceeded'],
            'kind': ErrorKind.TIMEOUT,
        },
        'rate_limit': {
            'patterns': ['rate limit', 'too many requests', 'quota exceeded',
                         'throttled', 'try again later'],
            'kind': ErrorKind.RATE_LIMIT,
        },
        'authentication': {
            'patterns': ['unauthorized', 'forbidden', 'invalid token',
                         'authentication failed', 'invalid api key'],
            'kind': ErrorKind.AUTH,
        },
        'server_error': {
            'patterns': ['server error', 'service unavailable', 'bad gateway',
                         'internal error'],
            'kind': ErrorKind.SERVER,
        },
        'validation': {
            'patterns': ['bad request', 'invalid request', 'validation error'],
            'kind': ErrorKind.VALIDATION,
        },
        'network': {
            'patterns': ['connection refused', 'connection reset', 'network error',
                         'econnrefused', 'econnreset', 'enotfound',
                         'name resolution', 'connection error'],
            'kind': ErrorKind.NETWORK,
        },
    }

    # Checked in priority order (timeout before network)
    PATTERN_PRIORITY = ['timeout', 'rate_limit', 'authentication', 'server_error',
                        'validation', 'network']

    AUTH_STATUS_CODES: Set[int] = {401, 403}
    DEFAULT_RATE_LIMIT_DELAY = 60.0

    @classmethod
    def classify(
        cls,
        error: BaseException,
        correlation_id: Optional[str] = None,
    ) -> RageError:
        """
        Classify an exception.

        Args:
            error: The exception to classify
            correlation_id: Correlation ID to attach to the result

        Returns:
            A ``RageError``; already-classified errors are returned unchanged
        """
        if isinstance(error, RageError):
            return error

        kind = cls._classify_kind(error)
        status_code = cls._get_status_code(error)
        retry_after = cls._get_retry_after(error)
        if kind == ErrorKind.RATE_LIMIT and retry_after is None:
            retry_after = cls.DEFAULT_RATE_LIMIT_DELAY

        error_type = ERROR_TYPES[kind]
        return error_type(
            cls.safe_message(error),
            status_code=status_code,
            retry_after=retry_after,
            correlation_id=correlation_id,
            cause=error,
        )

    @classmethod
    def is_retryable(cls, error: BaseException) -> bool:
        return cls.classify(error).retryable

    @classmethod
    def _classify_kind(cls, error: BaseException) -> ErrorKind:
        if isinstance(error, httpx.TimeoutException):
            return ErrorKind.TIMEOUT
        if isinstance(error, httpx.HTTPStatusError):
            return cls.categorize_status_code(error.response.status_code)
        if isinstance(error, httpx.TransportError):
            return ErrorKind.NETWORK
        # TimeoutError subclasses OSError, so it must be checked first
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorKind.TIMEOUT
        if isinstance(error, (ConnectionError, OSError)):
            return ErrorKind.NETWORK

        status_code = cls._get_status_code(error)
        if status_code:
            return cls.categorize_status_code(status_code)

        try:
            error_str = str(error).lower()
        except Exception:
            error_str = ''

        for pattern_key in cls.PATTERN_PRIORITY:
            pattern_info = cls.ERROR_PATTERNS[pattern_key]
            if any(pattern in error_str for pattern in pattern_info['patterns']):
                return pattern_info['kind']

        return ErrorKind.UNKNOWN

    @classmethod
    def categorize_status_code(cls, status_code: int) -> ErrorKind:
        """Categorize error based on HTTP status code."""
        if status_code in cls.AUTH_STATUS_CODES:
            return ErrorKind.AUTH
        elif status_code == 429:
            return ErrorKind.RATE_LIMIT
        elif status_code >= 500:
            return ErrorKind.SERVER
        elif status_code >= 400:
            return ErrorKind.VALIDATION
        else:
            return ErrorKind.UNKNOWN

    @classmethod
    def _get_status_code(cls, error: BaseException) -> Optional[int]:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code
        status_code = getattr(error, 'status_code', None)
        return status_code if isinstance(status_code, int) else None

    @classmethod
    def _get_retry_after(cls, error: BaseException) -> Optional[float]:
        """Extract retry delay from error if available."""
        if getattr(error, 'retry_after', None) is not None:
            return float(error.retry_after)

        response = getattr(error, 'response', None)
        headers = getattr(response, 'headers', None)
        if headers is not None:
            retry_after = headers.get('Retry-After')
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return None

    @staticmethod
    def safe_message(error: BaseException) -> str:
        """Error text with credentials redacted."""
        message = str(error) or type(error).__name__
        message = re.sub(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', 'Bearer [REDACTED]', message)
        message = re.sub(
            r'(token|key|password|secret)(["\']?\s*[:=]\s*["\']?)[^\s"\',]+',
            r'\1\2[REDACTED]',
            message,
            flags=re.IGNORECASE,
        )
        return message
