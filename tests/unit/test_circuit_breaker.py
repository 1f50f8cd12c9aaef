"""Unit tests for the circuit breaker state machine."""

import asyncio
import time

import pytest
from unittest.mock import AsyncMock, patch

from rage_sdk.reliability.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerManager,
    CircuitState,
)
from rage_sdk.reliability.errors import CircuitOpenError


async def failing():
    raise ConnectionError("connection refused")


async def succeeding():
    return "ok"


async def drive(breaker, outcomes):
    """Run a sequence of True (success) / False (failure) calls."""
    for ok in outcomes:
        try:
            await breaker.execute(succeeding if ok else failing)
        except (ConnectionError, CircuitOpenError):
            pass


class TestCircuitBreakerTransitions:
    """Test CLOSED -> OPEN -> HALF_OPEN -> CLOSED transitions."""

    def test_initial_state_is_closed(self):
        breaker = CircuitBreaker("test")
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.get_stats()["is_healthy"] is True

    @pytest.mark.asyncio
    async def test_minimum_requests_prevents_early_open(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=2, minimum_requests=5, reset_timeout=60
        ))
        await drive(breaker, [False, False, False])

        assert breaker.is_closed()
        assert breaker.stats.failure_count == 3

    @pytest.mark.asyncio
    async def test_opens_when_threshold_and_minimum_reached(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=3, minimum_requests=3, reset_timeout=60
        ))
        await drive(breaker, [False, False])
        assert breaker.is_closed()

        await drive(breaker, [False])
        assert breaker.is_open()
        assert breaker.stats.last_failure_time is not None

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=3, minimum_requests=1, reset_timeout=60
        ))
        await drive(breaker, [False, False, True, False, False])

        assert breaker.is_closed()
        assert breaker.stats.failure_count == 2
        assert breaker.stats.total_requests == 5

    @pytest.mark.asyncio
    async def test_open_circuit_does_not_invoke_operation(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1, reset_timeout=60
        ))
        await drive(breaker, [False])
        assert breaker.is_open()

        operation = AsyncMock(return_value="ok")
        for _ in range(5):
            with pytest.raises(CircuitOpenError) as exc_info:
                await breaker.execute(operation)
            assert exc_info.value.retryable is False
            assert exc_info.value.breaker_name == "test"

        operation.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_probe_closes_and_resets_counters(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=2, minimum_requests=2, reset_timeout=0.05
        ))
        await drive(breaker, [False, False])
        assert breaker.is_open()

        await asyncio.sleep(0.06)
        assert await breaker.execute(succeeding) == "ok"

        assert breaker.is_closed()
        assert breaker.stats.failure_count == 0
        assert breaker.stats.success_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1, reset_timeout=0.05
        ))
        await drive(breaker, [False])
        first_failure = breaker.stats.last_failure_time

        await asyncio.sleep(0.06)
        with pytest.raises(ConnectionError):
            await breaker.execute(failing)

        assert breaker.is_open()
        assert breaker.stats.last_failure_time > first_failure
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeeding)

    @pytest.mark.asyncio
    async def test_wall_clock_jump_keeps_circuit_open(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1, reset_timeout=60.0
        ))
        await drive(breaker, [False])
        op = AsyncMock(return_value="ok")

        with patch("rage_sdk.reliability.circuit_breaker.time.time", return_value=time.time() + 3600):
            with pytest.raises(CircuitOpenError):
                await breaker.execute(op)

        assert breaker.is_open()
        op.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_one_probe_in_half_open(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1, reset_timeout=0.05
        ))
        await drive(breaker, [False])
        await asyncio.sleep(0.06)

        release = asyncio.Event()
        probe_calls = 0

        async def slow_probe():
            nonlocal probe_calls
            probe_calls += 1
            await release.wait()
            return "probe"

        probe = asyncio.create_task(breaker.execute(slow_probe))
        await asyncio.sleep(0)
        assert breaker.is_half_open()

        with pytest.raises(CircuitOpenError):
            await breaker.execute(slow_probe)

        release.set()
        assert await probe == "probe"
        assert probe_calls == 1
        assert breaker.is_closed()


class TestCircuitBreakerConcurrency:
    """Test shared-state consistency under concurrent calls."""

    @pytest.mark.asyncio
    async def test_concurrent_failures_keep_counters_consistent(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=5, minimum_requests=10, reset_timeout=60
        ))
        results = await asyncio.gather(
            *(breaker.execute(failing) for _ in range(50)),
            return_exceptions=True,
        )

        rejected = sum(1 for r in results if isinstance(r, CircuitOpenError))
        failed = sum(1 for r in results if isinstance(r, ConnectionError))
        assert rejected + failed == 50
        assert breaker.stats.total_requests == failed
        assert failed >= 10
        assert breaker.is_open()


class TestCircuitBreakerOperations:
    """Test stats, reset and manual control."""

    @pytest.mark.asyncio
    async def test_get_stats_shape(self):
        breaker = CircuitBreaker("vectorize_retrieve")
        await drive(breaker, [True, False])

        stats = breaker.get_stats()
        assert stats["name"] == "vectorize_retrieve"
        assert stats["state"] == "closed"
        assert stats["failure_count"] == 1
        assert stats["success_count"] == 1
        assert stats["total_requests"] == 2
        assert stats["uptime"] >= 0
        assert stats["last_failure_time"] is not None

    @pytest.mark.asyncio
    async def test_reset_returns_to_closed(self):
        breaker = CircuitBreaker("test", CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1, reset_timeout=60
        ))
        await drive(breaker, [False])
        assert breaker.is_open()

        await breaker.reset()

        assert breaker.is_closed()
        assert breaker.stats.total_requests == 0
        assert await breaker.execute(succeeding) == "ok"

    @pytest.mark.asyncio
    async def test_force_open_and_close(self):
        breaker = CircuitBreaker("test")
        await breaker.force_open()
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeeding)

        await breaker.force_close()
        assert await breaker.execute(succeeding) == "ok"


class TestCircuitBreakerManager:

    def test_get_or_create_returns_same_instance(self):
        manager = CircuitBreakerManager(CircuitBreakerConfig(failure_threshold=7))
        first = manager.get_or_create("vectorize_retrieve")

        assert manager.get_or_create("vectorize_retrieve") is first
        assert first.config.failure_threshold == 7
        assert manager.get("missing") is None

    @pytest.mark.asyncio
    async def test_reset_all(self):
        manager = CircuitBreakerManager(CircuitBreakerConfig(
            failure_threshold=1, minimum_requests=1
        ))
        await drive(manager.get_or_create("a"), [False])
        await drive(manager.get_or_create("b"), [False])
        assert {s["state"] for s in manager.get_all_stats().values()} == {"open"}

        await manager.reset_all()
        assert {s["state"] for s in manager.get_all_stats().values()} == {"closed"}
