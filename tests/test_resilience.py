"""
Unit tests for the database circuit breaker and the atomic unit of work.

Tests cover:
- CircuitBreaker state machine: CLOSED → OPEN → HALF_OPEN → CLOSED
- Fast-fail while OPEN, without calling the wrapped function
- Which exceptions count as failures
- get_status() health-check dict
- atomic(): commit through the breaker, rollback and re-raise on error
"""

import time
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from simbank.core.exceptions import InsufficientFunds
from simbank.core.resilience import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    db_circuit_breaker,
)
from simbank.db.transaction import atomic


def _breaker(threshold: int = 2, recovery: float = 5.0) -> CircuitBreaker:
    return CircuitBreaker(
        name="test",
        failure_threshold=threshold,
        recovery_timeout=recovery,
        expected_exceptions=(ConnectionError,),
    )


async def _trip(cb: CircuitBreaker) -> None:
    failing = AsyncMock(side_effect=ConnectionError("db down"))
    for _ in range(cb.failure_threshold):
        with pytest.raises(ConnectionError):
            await cb.call(failing)


class TestCircuitBreakerError:
    def test_attributes(self):
        err = CircuitBreakerError("database", 5.5)
        assert err.name == "database"
        assert err.retry_after == 5.5
        assert "OPEN" in str(err)


class TestCircuitBreakerStates:
    @pytest.mark.asyncio
    async def test_passes_result_through_when_closed(self):
        cb = _breaker()
        func = AsyncMock(return_value="ok")

        assert await cb.call(func, 1, key="v") == "ok"
        func.assert_awaited_once_with(1, key="v")
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_stays_closed_below_threshold(self):
        cb = _breaker(threshold=3)
        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError()))
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        cb = _breaker(threshold=3)
        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError()))
        await cb.call(AsyncMock(return_value=None))
        assert cb._failure_count == 0

    @pytest.mark.asyncio
    async def test_opens_and_fails_fast(self):
        cb = _breaker()
        await _trip(cb)
        assert cb.state == CircuitState.OPEN

        func = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerError) as exc_info:
            await cb.call(func)
        assert 0 <= exc_info.value.retry_after <= 5.0
        func.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_half_open_probe_success_closes(self):
        cb = _breaker(recovery=0.01)
        await _trip(cb)
        cb._last_failure_time = time.monotonic() - 1.0
        assert cb.state == CircuitState.HALF_OPEN

        assert await cb.call(AsyncMock(return_value="back")) == "back"
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_failure_reopens(self):
        cb = _breaker(recovery=0.01)
        await _trip(cb)
        cb._last_failure_time = time.monotonic() - 1.0

        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError()))
        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_admits_a_single_probe(self):
        cb = _breaker(recovery=0.01)
        await _trip(cb)
        cb._last_failure_time = time.monotonic() - 1.0

        async def probe():
            # A second caller arriving while the probe runs is refused.
            with pytest.raises(CircuitBreakerError):
                await cb.call(AsyncMock(return_value="second"))
            return "probe"

        assert await cb.call(probe) == "probe"
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset_closes_circuit(self):
        cb = _breaker()
        await _trip(cb)
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.get_status()["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_domain_errors_do_not_count(self):
        cb = _breaker(threshold=1)
        with pytest.raises(InsufficientFunds):
            await cb.call(AsyncMock(side_effect=InsufficientFunds("acc", 1)))
        assert cb.state == CircuitState.CLOSED

    def test_get_status(self):
        status = CircuitBreaker(name="db", failure_threshold=5, recovery_timeout=30.0).get_status()
        assert status == {
            "name": "db",
            "state": "closed",
            "failure_count": 0,
            "failure_threshold": 5,
            "success_count": 0,
            "recovery_timeout_s": 30.0,
        }

    def test_shared_database_breaker_watches_connection_errors(self):
        assert db_circuit_breaker.name == "database"
        assert ConnectionError in db_circuit_breaker.expected_exceptions
        assert not issubclass(IntegrityError, db_circuit_breaker.expected_exceptions)


class TestAtomic:
    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_db):
        async with atomic(mock_db) as session:
            assert session is mock_db

        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, mock_db):
        with pytest.raises(InsufficientFunds):
            async with atomic(mock_db):
                raise InsufficientFunds("acc", 100)

        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back_and_counts_toward_breaker(self, mock_db):
        mock_db.commit.side_effect = ConnectionError("connection reset")

        with pytest.raises(ConnectionError):
            async with atomic(mock_db):
                pass

        mock_db.rollback.assert_awaited_once()
        assert db_circuit_breaker._failure_count == 1

    @pytest.mark.asyncio
    async def test_open_breaker_rejects_commit(self, mock_db):
        db_circuit_breaker._state = CircuitState.OPEN
        db_circuit_breaker._last_failure_time = time.monotonic()

        with pytest.raises(CircuitBreakerError):
            async with atomic(mock_db):
                pass

        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()
