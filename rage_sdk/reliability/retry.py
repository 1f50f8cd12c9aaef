"""
Retry with exponential backoff and jitter.

Failures are classified before every decision: non-retryable errors are
raised after a single attempt, retryable ones are retried until the policy's
attempt budget is spent.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING, TypeVar

from .error_classifier import ErrorClassifier
from .errors import ErrorKind, RageError

if TYPE_CHECKING:
    from .circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar('T')

MIN_DELAY = 0.001


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration, delays in seconds."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1
    rate_limit_multiplier: float = 2.0
    respect_retry_after: bool = True

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_delay <= 0 or self.max_delay <= 0:
            raise ValueError("delays must be positive")
        if not 0 <= self.jitter_factor < 1:
            raise ValueError("jitter_factor must be in [0, 1)")

    @property
    def attempts(self) -> int:
        """Number of invocations; zero is treated as a single attempt."""
        return max(1, self.max_attempts)

    def with_attempts(self, max_attempts: int) -> "RetryPolicy":
        return replace(self, max_attempts=max_attempts)


RETRY_STRATEGIES: Dict[str, RetryPolicy] = {
    "conservative": RetryPolicy(max_attempts=2, base_delay=2.0, max_delay=10.0),
    "standard": RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0),
    "aggressive": RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=5.0),
    "fast": RetryPolicy(max_attempts=2, base_delay=0.2, max_delay=1.0),
}


class RetryMetrics:
    """Tracks retry outcomes for observability."""

    def __init__(self):
        self.executions = 0
        self.attempts = 0
        self.retries = 0
        self.recovered = 0
        self.exhausted = 0
        self.aborted = 0
        self.total_delay = 0.0
        self.errors_by_kind: Dict[str, int] = {}

    def record_error(self, kind: ErrorKind):
        self.errors_by_kind[kind.value] = self.errors_by_kind.get(kind.value, 0) + 1

    def failure_rate(self) -> float:
        if self.executions == 0:
            return 0.0
        return (self.exhausted + self.aborted) / self.executions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executions": self.executions,
            "attempts": self.attempts,
            "retries": self.retries,
            "recovered": self.recovered,
            "exhausted": self.exhausted,
            "aborted": self.aborted,
            "total_delay": self.total_delay,
            "failure_rate": self.failure_rate(),
            "errors_by_kind": dict(self.errors_by_kind),
        }


class RetryManager:
    """Re-invokes failed operations according to a ``RetryPolicy``."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.metrics = RetryMetrics()
        self._sleep = sleep

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        operation: str = "operation",
        correlation_id: Optional[str] = None,
    ) -> T:
        """
        Execute function with retry logic.

        Args:
            func: Async function to execute
            policy: Policy override for this call
            operation: Operation name for logging
            correlation_id: Correlation ID attached to classified errors

        Returns:
            Result from successful function execution

        Raises:
            RageError: The classified error of the last attempt
        """
        policy = policy or self.policy
        self.metrics.executions += 1
        attempt = 0

        while True:
            attempt += 1
            self.metrics.attempts += 1
            try:
                result = await func()
            except Exception as raw_error:
                error = ErrorClassifier.classify(raw_error, correlation_id)
                self.metrics.record_error(error.kind)

                if not error.retryable:
                    self.metrics.aborted += 1
                    logger.debug(
                        f"{operation} failed with non-retryable {error.kind.value}",
                        extra={"operation": operation, "correlation_id": correlation_id}
                    )
                    if error is raw_error:
                        raise
                    raise error from raw_error

                if attempt >= policy.attempts:
                    self.metrics.exhausted += 1
                    logger.warning(
                        f"{operation} failed after {attempt} attempts",
                        extra={
                            "operation": operation,
                            "attempts": attempt,
                            "error_kind": error.kind.value,
                            "correlation_id": correlation_id,
                        }
                    )
                    if error is raw_error:
                        raise
                    raise error from raw_error

                delay = self.calculate_delay(attempt, policy, error)
                self.metrics.retries += 1
                self.metrics.total_delay += delay
                logger.info(
                    f"Retrying {operation} after {error.kind.value}",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay": delay,
                        "correlation_id": correlation_id,
                    }
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                self.metrics.recovered += 1
            return result

    async def execute_with_circuit_breaker(
        self,
        func: Callable[[], Awaitable[T]],
        breaker: "CircuitBreaker",
        policy: Optional[RetryPolicy] = None,
        operation: str = "operation",
        correlation_id: Optional[str] = None,
    ) -> T:
        """Retry with every attempt guarded by ``breaker``.

        An open circuit raises ``CircuitOpenError``, which is not retryable,
        so the loop ends at once.
        """
        async def guarded() -> T:
            return await breaker.execute(func)

        return await self.execute(guarded, policy, operation, correlation_id)

    def calculate_delay(
        self,
        attempt: int,
        policy: Optional[RetryPolicy] = None,
        error: Optional[RageError] = None,
    ) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        policy = policy or self.policy
        delay = min(
            policy.base_delay * (policy.backoff_factor ** (attempt - 1)),
            policy.max_delay,
        )

        if error is not None and error.kind == ErrorKind.RATE_LIMIT:
            delay *= policy.rate_limit_multiplier
            if policy.respect_retry_after and error.retry_after:
                delay = max(delay, error.retry_after)
            delay = min(delay, policy.max_delay)

        if policy.jitter_factor > 0:
            delay += random.uniform(-policy.jitter_factor, policy.jitter_factor) * delay

        return min(max(delay, MIN_DELAY), policy.max_delay)

    def update_policy(self, policy: RetryPolicy):
        """Swap the default policy; calls already running keep theirs."""
        self.policy = policy

    def reset(self):
        self.metrics = RetryMetrics()
