"""
Circuit breaker pattern implementation for retrieval resilience.

This module implements the circuit breaker pattern to prevent
cascading failures and provide fast failure detection.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar
import asyncio
import logging
import time

from .errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    failure_threshold: int = 5          # Failures before opening
    reset_timeout: float = 60.0         # Seconds before attempting recovery
    minimum_requests: int = 10          # Requests seen before the circuit may open


@dataclass
class CircuitBreakerStats:
    """Circuit breaker counters."""
    failure_count: int = 0
    success_count: int = 0
    total_requests: int = 0
    last_failure_time: Optional[float] = None
    last_failure_monotonic: Optional[float] = None
    created_at: float = field(default_factory=time.time)

    def record_success(self):
        self.success_count += 1
        self.total_requests += 1
        self.failure_count = 0

    def record_failure(self):
        self.failure_count += 1
        self.total_requests += 1
        self.mark_failure_time()

    def mark_failure_time(self):
        self.last_failure_time = time.time()
        self.last_failure_monotonic = time.monotonic()


class CircuitBreaker:
    """
    Circuit breaker for one operation class.

    Fails fast once failure density crosses the threshold, then lets a
    single probe through after the reset timeout.
    """

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.stats = CircuitBreakerStats()
        self._probe_in_flight = False
        self._state_lock = asyncio.Lock()

    async def execute(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute function through circuit breaker.

        Args:
            func: Async function to execute

        Returns:
            Result from successful function execution

        Raises:
            CircuitOpenError: If the circuit rejects the call; ``func`` is not invoked
            Original exception: If function fails
        """
        can_attempt, is_probe, error_msg = await self._can_attempt()
        if not can_attempt:
            raise CircuitOpenError(
                error_msg or f"Circuit breaker {self.name} is OPEN",
                breaker_name=self.name,
            )

        try:
            result = await func()
        except asyncio.CancelledError:
            if is_probe:
                async with self._state_lock:
                    self._probe_in_flight = False
            raise
        except Exception:
            await self._record_failure(is_probe)
            raise

        await self._record_success(is_probe)
        return result

    async def _can_attempt(self) -> Tuple[bool, bool, Optional[str]]:
        """Check if request can be attempted.

        Returns:
            Tuple of (can_attempt, is_probe, error_message)
        """
        async with self._state_lock:
            if self.state == CircuitState.CLOSED:
                return True, False, None

            if self.state == CircuitState.OPEN:
                if not self._reset_timeout_elapsed():
                    return False, False, f"Circuit breaker {self.name} is OPEN"
                self._transition_to_half_open()

            # HALF_OPEN: exactly one probe at a time
            if self._probe_in_flight:
                return False, False, f"Circuit breaker {self.name} is HALF_OPEN, probe in flight"
            self._probe_in_flight = True
            return True, True, None

    async def _record_success(self, is_probe: bool):
        async with self._state_lock:
            self.stats.record_success()
            if is_probe:
                self._probe_in_flight = False
                if self.state == CircuitState.HALF_OPEN:
                    self._transition_to_closed()

    async def _record_failure(self, is_probe: bool):
        async with self._state_lock:
            self.stats.record_failure()

            if is_probe:
                self._probe_in_flight = False
                if self.state == CircuitState.HALF_OPEN:
                    self._transition_to_open()
            elif self.state == CircuitState.CLOSED and self._should_open():
                self._transition_to_open()

            logger.warning(
                f"Circuit breaker {self.name} recorded failure",
                extra={
                    "circuit_breaker": self.name,
                    "state": self.state.value,
                    "failure_count": self.stats.failure_count,
                    "total_requests": self.stats.total_requests,
                }
            )

    def _should_open(self) -> bool:
        return (
            self.stats.total_requests >= self.config.minimum_requests
            and self.stats.failure_count >= self.config.failure_threshold
        )

    def _reset_timeout_elapsed(self) -> bool:
        if self.stats.last_failure_monotonic is None:
            return True
        return time.monotonic() - self.stats.last_failure_monotonic >= self.config.reset_timeout

    def _transition_to_open(self):
        previous_state = self.state
        self.state = CircuitState.OPEN
        self.stats.mark_failure_time()

        logger.error(
            f"Circuit breaker {self.name} opened",
            extra={
                "circuit_breaker": self.name,
                "previous_state": previous_state.value,
                "failure_count": self.stats.failure_count,
                "total_requests": self.stats.total_requests,
            }
        )

    def _transition_to_closed(self):
        previous_state = self.state
        self.state = CircuitState.CLOSED
        self.stats.failure_count = 0
        self.stats.success_count = 0

        logger.info(
            f"Circuit breaker {self.name} closed",
            extra={
                "circuit_breaker": self.name,
                "previous_state": previous_state.value,
            }
        )

    def _transition_to_half_open(self):
        previous_state = self.state
        self.state = CircuitState.HALF_OPEN
        self._probe_in_flight = False

        logger.info(
            f"Circuit breaker {self.name} half-open",
            extra={
                "circuit_breaker": self.name,
                "previous_state": previous_state.value,
            }
        )

    def get_state(self) -> CircuitState:
        """Get current circuit state."""
        return self.state

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of breaker state and counters."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.stats.failure_count,
            "success_count": self.stats.success_count,
            "total_requests": self.stats.total_requests,
            "is_healthy": self.state == CircuitState.CLOSED,
            "last_failure_time": self.stats.last_failure_time,
            "uptime": time.time() - self.stats.created_at,
        }

    async def reset(self):
        """Reset circuit breaker to closed state."""
        async with self._state_lock:
            self.state = CircuitState.CLOSED
            self.stats = CircuitBreakerStats()
            self._probe_in_flight = False
            logger.info(f"Circuit breaker {self.name} reset")

    async def force_open(self):
        """Open the circuit manually, e.g. during maintenance."""
        async with self._state_lock:
            self._transition_to_open()

    async def force_close(self):
        async with self._state_lock:
            self._probe_in_flight = False
            self._transition_to_closed()


class CircuitBreakerManager:
    """Keeps one circuit breaker per operation class."""

    def __init__(self, default_config: Optional[CircuitBreakerConfig] = None):
        self.default_config = default_config or CircuitBreakerConfig()
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}

    def get_or_create(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None
    ) -> CircuitBreaker:
        """Get existing or create new circuit breaker."""
        if name not in self.circuit_breakers:
            self.circuit_breakers[name] = CircuitBreaker(name, config or self.default_config)
        return self.circuit_breakers[name]

    def get(self, name: str) -> Optional[CircuitBreaker]:
        """Get circuit breaker by name."""
        return self.circuit_breakers.get(name)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get stats for all circuit breakers."""
        return {
            name: cb.get_stats()
            for name, cb in self.circuit_breakers.items()
        }

    async def reset_all(self):
        """Reset all circuit breakers."""
        for cb in self.circuit_breakers.values():
            await cb.reset()
