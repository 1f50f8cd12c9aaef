"""Reliability layer: error taxonomy, timeouts, retries, circuit breaking."""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerManager,
    CircuitBreakerStats,
    CircuitState,
)
from .error_classifier import ErrorClassifier
from .error_handler import (
    ENRICHMENT_OPERATIONS,
    ErrorHandler,
    ErrorHandlerConfig,
    ExecutionContext,
    is_enrichment_operation,
)
from .errors import (
    AuthenticationError,
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    NetworkError,
    OperationTimeoutError,
    RageError,
    RateLimitError,
    ServerError,
    UnknownError,
    ValidationError,
)
from .retry import RETRY_STRATEGIES, RetryManager, RetryMetrics, RetryPolicy
from .timeout import TimeoutConfig, TimeoutManager

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerManager",
    "CircuitBreakerStats",
    "CircuitState",
    "ErrorClassifier",
    "ENRICHMENT_OPERATIONS",
    "ErrorHandler",
    "ErrorHandlerConfig",
    "ExecutionContext",
    "is_enrichment_operation",
    "AuthenticationError",
    "CircuitOpenError",
    "ConfigurationError",
    "ErrorKind",
    "NetworkError",
    "OperationTimeoutError",
    "RageError",
    "RateLimitError",
    "ServerError",
    "UnknownError",
    "ValidationError",
    "RETRY_STRATEGIES",
    "RetryManager",
    "RetryMetrics",
    "RetryPolicy",
    "TimeoutConfig",
    "TimeoutManager",
]
