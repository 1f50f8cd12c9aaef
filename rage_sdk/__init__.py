"""
rage-sdk: resilient retrieval-augmented context enrichment.

Retrieves supporting documents for a user message, scores and formats them
into a token-budgeted context block and injects it into a conversation,
degrading to "no enrichment" whenever the retrieval service misbehaves.
"""

from .config import RageConfig, get_recommendations
from .enrichment import inject_context, sanitize_query
from .interceptor import RageInterceptor
from .models import (
    ConversationMessage,
    EnrichmentRequest,
    FormattedContext,
    OptimizedContext,
    RetrievedDocument,
    TurnRole,
)
from .reliability import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    ConfigurationError,
    ErrorHandler,
    ErrorKind,
    ExecutionContext,
    OperationTimeoutError,
    RageError,
    RetryManager,
    RetryPolicy,
    TimeoutConfig,
    TimeoutManager,
)
from .retrieval import HTTPRetrievalClient, InMemoryRetrievalClient, RetrievalClient

__version__ = "0.1.0"

__all__ = [
    "RageConfig",
    "get_recommendations",
    "inject_context",
    "sanitize_query",
    "RageInterceptor",
    "ConversationMessage",
    "EnrichmentRequest",
    "FormattedContext",
    "OptimizedContext",
    "RetrievedDocument",
    "TurnRole",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ConfigurationError",
    "ErrorHandler",
    "ErrorKind",
    "ExecutionContext",
    "OperationTimeoutError",
    "RageError",
    "RetryManager",
    "RetryPolicy",
    "TimeoutConfig",
    "TimeoutManager",
    "HTTPRetrievalClient",
    "InMemoryRetrievalClient",
    "RetrievalClient",
]
