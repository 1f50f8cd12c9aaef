"""
Per-attempt deadlines for async operations.

The manager races an operation against a timer. When the timer wins the
caller receives an ``OperationTimeoutError`` and the operation task is
abandoned; its eventual result is discarded and never reaches a later call.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .errors import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class TimeoutConfig:
    """Timeout bounds in seconds."""
    default_timeout: float = 5.0
    min_timeout: float = 0.1
    max_timeout: float = 30.0

    def __post_init__(self):
        if self.min_timeout <= 0:
            raise ValueError("min_timeout must be positive")
        if self.min_timeout > self.max_timeout:
            raise ValueError("min_timeout must not exceed max_timeout")
        if not self.min_timeout <= self.default_timeout <= self.max_timeout:
            raise ValueError("default_timeout must lie within [min_timeout, max_timeout]")


@dataclass
class _ActiveOperation:
    operation: str
    timeout: float
    started_at: float
    handle: asyncio.TimerHandle
    deadline: asyncio.Future
    correlation_id: Optional[str] = None

    def remaining(self) -> float:
        return self.timeout - (time.monotonic() - self.started_at)


@dataclass
class TimeoutStats:
    """Bookkeeping for completed and in-flight operations."""
    completed_operations: int = 0
    timed_out_operations: int = 0
    failed_operations: int = 0
    total_execution_time: float = 0.0
    started_at: float = field(default_factory=time.time)

    @property
    def average_execution_time(self) -> float:
        if self.completed_operations == 0:
            return 0.0
        return self.total_execution_time / self.completed_operations


class TimeoutManager:
    """Races operations against clamped deadlines."""

    NEAR_EXPIRY_THRESHOLD = 0.1
    MAX_HEALTHY_ACTIVE = 100
    MAX_HEALTHY_NEAR_EXPIRY = 5

    def __init__(self, config: Optional[TimeoutConfig] = None):
        self.config = config or TimeoutConfig()
        self.stats = TimeoutStats()
        self._active: Dict[int, _ActiveOperation] = {}
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def clamp(self, timeout: Optional[float], config: Optional[TimeoutConfig] = None) -> float:
        """Clamp a requested timeout into the configured bounds."""
        config = config or self.config
        requested = config.default_timeout if timeout is None else timeout
        clamped = min(max(requested, config.min_timeout), config.max_timeout)
        if clamped != requested:
            logger.debug(
                "Clamped timeout",
                extra={"requested": requested, "clamped": clamped}
            )
        return clamped

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
        operation: str = "operation",
        correlation_id: Optional[str] = None,
        config: Optional[TimeoutConfig] = None,
    ) -> T:
        """
        Execute ``func`` with a deadline.

        Args:
            func: Async function to execute
            timeout: Requested timeout in seconds, clamped into bounds
            operation: Operation name for logging
            correlation_id: Correlation ID for logging
            config: Bounds snapshot to use instead of the current config

        Returns:
            Result of ``func``

        Raises:
            OperationTimeoutError: If the deadline fires first; not retryable
                once the manager is closed
            Original exception: If ``func`` fails before the deadline
        """
        if self._closed:
            raise OperationTimeoutError(
                f"Operation {operation} rejected: timeout manager is closed",
                retryable=False,
                correlation_id=correlation_id,
            )

        config = config or self.config
        effective = self.clamp(timeout, config)
        loop = asyncio.get_running_loop()
        op_id = next(self._ids)

        deadline = loop.create_future()
        handle = loop.call_later(effective, self._expire, deadline)
        task = asyncio.ensure_future(func())
        self._active[op_id] = _ActiveOperation(
            operation=operation,
            timeout=effective,
            started_at=time.monotonic(),
            handle=handle,
            deadline=deadline,
            correlation_id=correlation_id,
        )
        start = time.perf_counter()

        try:
            await asyncio.wait({task, deadline}, return_when=asyncio.FIRST_COMPLETED)

            if task.done():
                try:
                    result = task.result()
                except Exception:
                    self.stats.failed_operations += 1
                    raise
                self.stats.completed_operations += 1
                self.stats.total_execution_time += time.perf_counter() - start
                return result

            self._abandon(task)
            self.stats.timed_out_operations += 1
            if self._closed:
                raise OperationTimeoutError(
                    f"Operation {operation} cancelled at shutdown",
                    timeout=effective,
                    retryable=False,
                    correlation_id=correlation_id,
                )
            logger.warning(
                f"Operation {operation} timed out after {effective:.3f}s",
                extra={
                    "operation": operation,
                    "timeout": effective,
                    "correlation_id": correlation_id,
                }
            )
            raise OperationTimeoutError(
                f"Operation {operation} timed out after {int(effective * 1000)}ms",
                timeout=effective,
                correlation_id=correlation_id,
            )
        except asyncio.CancelledError:
            self._abandon(task)
            raise
        finally:
            handle.cancel()
            if not deadline.done():
                deadline.cancel()
            self._active.pop(op_id, None)

    @staticmethod
    def _expire(deadline: asyncio.Future):
        if not deadline.done():
            deadline.set_result(None)

    @staticmethod
    def _abandon(task: asyncio.Future):
        if not task.done():
            task.cancel()
        # Retrieve any late exception so it is not reported as unhandled
        task.add_done_callback(
            lambda t: t.cancelled() or t.exception()
        )

    def cleanup(self) -> int:
        """Fire every outstanding deadline and cancel its timer.

        Waiting callers are released with ``OperationTimeoutError``. Safe to
        call repeatedly.

        Returns:
            Number of timers cancelled
        """
        cancelled = 0
        for active in list(self._active.values()):
            active.handle.cancel()
            self._expire(active.deadline)
            cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} outstanding timeouts")
        return cancelled

    def close(self) -> int:
        """Stop accepting operations and release every waiter.

        Released and later callers get a non-retryable
        ``OperationTimeoutError``, so retry loops end instead of starting
        new attempts.

        Returns:
            Number of timers cancelled
        """
        self._closed = True
        return self.cleanup()

    def get_active_timeouts(self) -> List[Dict[str, Any]]:
        return [
            {
                "operation": active.operation,
                "timeout": active.timeout,
                "remaining": max(0.0, active.remaining()),
                "correlation_id": active.correlation_id,
            }
            for active in self._active.values()
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_timeouts": len(self._active),
            "completed_operations": self.stats.completed_operations,
            "timed_out_operations": self.stats.timed_out_operations,
            "failed_operations": self.stats.failed_operations,
            "average_execution_time": self.stats.average_execution_time,
            "default_timeout": self.config.default_timeout,
            "min_timeout": self.config.min_timeout,
            "max_timeout": self.config.max_timeout,
        }

    def get_health_metrics(self) -> Dict[str, Any]:
        active = len(self._active)
        near_expiry = sum(
            1 for a in self._active.values()
            if a.remaining() < self.NEAR_EXPIRY_THRESHOLD
        )
        total = self.stats.completed_operations + self.stats.timed_out_operations
        return {
            "active_timeouts": active,
            "near_expiry": near_expiry,
            "timeout_rate": self.stats.timed_out_operations / total if total else 0.0,
            "is_healthy": (
                active < self.MAX_HEALTHY_ACTIVE
                and near_expiry < self.MAX_HEALTHY_NEAR_EXPIRY
            ),
        }

    def update_config(self, config: TimeoutConfig):
        """Swap bounds; in-flight operations keep their original deadline."""
        self.config = config

    def reset(self):
        self.cleanup()
        self.stats = TimeoutStats()
