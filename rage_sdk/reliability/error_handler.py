"""
Resilience orchestrator.

Composes the circuit breaker, retry manager and timeout manager around an
operation and applies the fallback policy once every layer is exhausted:
enrichment operations degrade to ``None``, anything else re-raises the
classified error.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING, TypeVar

from .circuit_breaker import CircuitBreakerConfig, CircuitBreakerManager, CircuitState
from .errors import RageError
from .retry import RetryManager, RetryPolicy
from .timeout import TimeoutConfig, TimeoutManager

if TYPE_CHECKING:
    from ..observability.collector import MetricsCollector

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_BREAKER = "vectorize_retrieve"

ENRICHMENT_OPERATIONS = (
    "enrichMessage",
    "retrieveDocuments",
    "formatContext",
    "vectorizeApi",
    "contextEnrichment",
)


def is_enrichment_operation(operation: str) -> bool:
    return any(name in operation for name in ENRICHMENT_OPERATIONS)


@dataclass(frozen=True)
class ErrorHandlerConfig:
    """Snapshot of resilience settings used by one call."""
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    fallback_enabled: bool = True


@dataclass
class ExecutionContext:
    """Per-call metadata for ``execute_with_resilience``."""
    operation: str
    correlation_id: Optional[str] = None
    timeout: Optional[float] = None
    breaker_name: str = DEFAULT_BREAKER
    metadata: Dict[str, Any] = field(default_factory=dict)


class ErrorHandler:
    """Runs operations behind breaker, retry and timeout layers."""

    def __init__(
        self,
        config: Optional[ErrorHandlerConfig] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config or ErrorHandlerConfig()
        self.metrics = metrics
        self.breakers = CircuitBreakerManager(self.config.circuit_breaker)
        self.retry_manager = RetryManager(self.config.retry)
        self.timeout_manager = TimeoutManager(self.config.timeout)
        self.fallbacks_used = 0
        self.errors_raised = 0

    async def execute_with_resilience(
        self,
        func: Callable[[], Awaitable[T]],
        context: ExecutionContext,
    ) -> Optional[T]:
        """
        Execute ``func`` with breaker, retries and per-attempt deadlines.

        Args:
            func: Async function to execute, invoked once per attempt
            context: Operation name, correlation ID and timeout override

        Returns:
            The operation result, or ``None`` when an enrichment operation
            exhausts every layer and fallback is enabled

        Raises:
            RageError: Classified error for non-enrichment operations
        """
        settings = self.config
        breaker = self.breakers.get_or_create(context.breaker_name)

        async def attempt() -> T:
            return await self.timeout_manager.execute(
                func,
                timeout=context.timeout,
                operation=context.operation,
                correlation_id=context.correlation_id,
                config=settings.timeout,
            )

        try:
            return await self.retry_manager.execute_with_circuit_breaker(
                attempt,
                breaker,
                policy=settings.retry,
                operation=context.operation,
                correlation_id=context.correlation_id,
            )
        except RageError as error:
            return self._handle_failure(error, context, settings)

    def _handle_failure(
        self,
        error: RageError,
        context: ExecutionContext,
        settings: ErrorHandlerConfig,
    ) -> None:
        if error.correlation_id is None:
            error.correlation_id = context.correlation_id
        if self.metrics is not None:
            self.metrics.record_error(
                error.kind.value,
                operation=context.operation,
                correlation_id=context.correlation_id,
                retryable=error.retryable,
            )

        if settings.fallback_enabled and is_enrichment_operation(context.operation):
            self.fallbacks_used += 1
            logger.warning(
                f"{context.operation} degraded to no enrichment after {error.kind.value}",
                extra={
                    "operation": context.operation,
                    "error_kind": error.kind.value,
                    "correlation_id": context.correlation_id,
                }
            )
            return None

        self.errors_raised += 1
        raise error

    def get_health_status(self) -> Dict[str, Any]:
        """Aggregate sub-component health into healthy, degraded or unhealthy."""
        breakers = self.breakers.get_all_stats()
        timeouts = self.timeout_manager.get_health_metrics()
        retries = self.retry_manager.metrics.to_dict()

        states = {stats["state"] for stats in breakers.values()}
        if CircuitState.OPEN.value in states:
            status = "unhealthy"
        elif CircuitState.HALF_OPEN.value in states or not timeouts["is_healthy"]:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "status": status,
            "circuit_breakers": breakers,
            "timeouts": {**self.timeout_manager.get_stats(), **timeouts},
            "retries": retries,
            "fallback_enabled": self.config.fallback_enabled,
            "fallbacks_used": self.fallbacks_used,
            "errors_raised": self.errors_raised,
        }

    def update_config(
        self,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        fallback_enabled: Optional[bool] = None,
    ) -> ErrorHandlerConfig:
        """
        Reconfigure without restart.

        Calls already in flight keep the snapshot they started with.

        Args:
            timeout: New default per-attempt timeout in seconds
            retry_attempts: New maximum attempts per call
            fallback_enabled: Toggle graceful degradation

        Returns:
            The new configuration

        Raises:
            ValueError: If ``timeout`` lies outside the configured bounds
        """
        config = self.config
        if timeout is not None:
            config = replace(config, timeout=replace(config.timeout, default_timeout=timeout))
        if retry_attempts is not None:
            config = replace(config, retry=config.retry.with_attempts(retry_attempts))
        if fallback_enabled is not None:
            config = replace(config, fallback_enabled=fallback_enabled)

        self.config = config
        self.timeout_manager.update_config(config.timeout)
        self.retry_manager.update_policy(config.retry)
        logger.info(
            "Error handler configuration updated",
            extra={
                "timeout": config.timeout.default_timeout,
                "retry_attempts": config.retry.max_attempts,
                "fallback_enabled": config.fallback_enabled,
            }
        )
        return config

    async def reset(self):
        """Reset breakers, retry metrics and timeout bookkeeping."""
        await self.breakers.reset_all()
        self.retry_manager.reset()
        self.timeout_manager.reset()
        self.fallbacks_used = 0
        self.errors_raised = 0

    def cleanup(self) -> int:
        return self.timeout_manager.cleanup()

    @property
    def closed(self) -> bool:
        return self.timeout_manager.closed

    def close(self) -> int:
        """Shut down: in-flight and later calls stop without further attempts."""
        return self.timeout_manager.close()
