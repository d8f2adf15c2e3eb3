"""
Unit tests for the database circuit breaker.

Tests cover:
- CircuitBreaker state machine: CLOSED -> OPEN -> HALF_OPEN -> CLOSED
- Fast-fail behaviour when circuit is open
- get_status() and reset()
- The shared breaker: which store errors count, and repository wiring
"""

import time
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from spv_ledger.core.resilience import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    db_circuit_breaker,
)

# ────────────────────────────────────────────────────────────────────────────
# CircuitBreakerError tests
# ────────────────────────────────────────────────────────────────────────────


class TestCircuitBreakerError:
    """Tests for the CircuitBreakerError exception class."""

    def test_attributes(self):
        err = CircuitBreakerError("db", 5.5)
        assert err.name == "db"
        assert err.retry_after == 5.5
        assert "db" in str(err)
        assert "OPEN" in str(err)

    def test_is_exception(self):
        err = CircuitBreakerError("db", 1.0)
        assert isinstance(err, Exception)


# ────────────────────────────────────────────────────────────────────────────
# CircuitBreaker tests
# ────────────────────────────────────────────────────────────────────────────


class TestCircuitBreakerClosed:
    """Tests for normal (CLOSED) operation."""

    @pytest.fixture()
    def cb(self):
        return CircuitBreaker(
            name="test",
            failure_threshold=3,
            recovery_timeout=1.0,
            expected_exceptions=(ValueError, ConnectionError),
        )

    @pytest.mark.asyncio
    async def test_successful_call(self, cb):
        func = AsyncMock(return_value="ok")
        result = await cb.call(func)
        assert result == "ok"
        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_state_starts_closed(self, cb):
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_success_increments_counter(self, cb):
        func = AsyncMock(return_value="ok")
        await cb.call(func)
        assert cb._success_count == 1
        assert cb._failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_below_threshold_stays_closed(self, cb):
        func = AsyncMock(side_effect=ValueError("boom"))
        for _ in range(2):  # threshold is 3
            with pytest.raises(ValueError):
                await cb.call(func)
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 2


class TestCircuitBreakerOpen:
    """Tests for OPEN state behaviour."""

    @pytest.fixture()
    def cb(self):
        return CircuitBreaker(
            name="test",
            failure_threshold=2,
            recovery_timeout=5.0,
            expected_exceptions=(ValueError,),
        )

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, cb):
        func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(func)
        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_raises_circuit_breaker_error(self, cb):
        func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(func)

        with pytest.raises(CircuitBreakerError) as exc_info:
            await cb.call(func)
        assert exc_info.value.name == "test"
        assert exc_info.value.retry_after >= 0

    @pytest.mark.asyncio
    async def test_open_circuit_does_not_call_function(self, cb):
        fail_func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(fail_func)

        success_func = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerError):
            await cb.call(success_func)
        success_func.assert_not_awaited()


class TestCircuitBreakerHalfOpen:
    """Tests for HALF_OPEN state and recovery."""

    @pytest.fixture()
    def cb(self):
        return CircuitBreaker(
            name="test",
            failure_threshold=2,
            recovery_timeout=0.01,  # very short for testing
            expected_exceptions=(ValueError,),
        )

    @pytest.mark.asyncio
    async def test_transitions_to_half_open_after_timeout(self, cb):
        func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(func)
        assert cb._state == CircuitState.OPEN

        # Simulate recovery timeout by backdating the last failure time
        cb._last_failure_time = time.monotonic() - 1.0
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_successful_trial_call_closes_circuit(self, cb):
        fail_func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(fail_func)

        cb._last_failure_time = time.monotonic() - 1.0  # trigger half-open

        success_func = AsyncMock(return_value="recovered")
        result = await cb.call(success_func)
        assert result == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_trial_call_reopens_circuit(self, cb):
        fail_func = AsyncMock(side_effect=ValueError("fail"))
        for _ in range(2):
            with pytest.raises(ValueError):
                await cb.call(fail_func)

        cb._last_failure_time = time.monotonic() - 1.0  # trigger half-open

        with pytest.raises(ValueError):
            await cb.call(fail_func)
        assert cb.state == CircuitState.OPEN


class TestCircuitBreakerNonExpected:
    """Tests for exceptions NOT in expected_exceptions."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_passes_through(self):
        cb = CircuitBreaker(
            name="test",
            failure_threshold=2,
            recovery_timeout=5.0,
            expected_exceptions=(ValueError,),
        )
        func = AsyncMock(side_effect=TypeError("not expected"))
        with pytest.raises(TypeError):
            await cb.call(func)
        # Should not affect failure count
        assert cb._failure_count == 0
        assert cb.state == CircuitState.CLOSED


class TestCircuitBreakerGetStatus:
    """Tests for get_status()."""

    def test_status_dict_keys(self):
        cb = CircuitBreaker(name="db", failure_threshold=5, recovery_timeout=30.0)
        status = cb.get_status()
        assert status["name"] == "db"
        assert status["state"] == "closed"
        assert status["failure_count"] == 0
        assert status["failure_threshold"] == 5
        assert status["success_count"] == 0
        assert status["recovery_timeout_s"] == 30.0



    def test_reset_closes_and_clears(self):
        cb = CircuitBreaker(name="db", failure_threshold=1, recovery_timeout=30.0)
        cb._record_failure()
        assert cb.state == CircuitState.OPEN
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.get_status()["failure_count"] == 0


# ────────────────────────────────────────────────────────────────────────────
# Database breaker wiring
# ────────────────────────────────────────────────────────────────────────────


class TestDatabaseCircuitBreaker:
    """The shared breaker counts store outages but not data errors."""

    @pytest.mark.asyncio
    async def test_integrity_error_does_not_count(self):
        func = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("dup")))
        with pytest.raises(IntegrityError):
            await db_circuit_breaker.call(func)
        assert db_circuit_breaker._failure_count == 0

    @pytest.mark.asyncio
    async def test_operational_error_counts(self):
        func = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("down")))
        with pytest.raises(OperationalError):
            await db_circuit_breaker.call(func)
        assert db_circuit_breaker._failure_count == 1

    @pytest.mark.asyncio
    async def test_repository_fails_fast_when_open(self, mock_db):
        from spv_ledger.models.project import Project
        from spv_ledger.repositories.project_repo import ProjectRepository

        repo = ProjectRepository(Project, mock_db)
        mock_db.get.side_effect = OperationalError("SELECT", {}, Exception("down"))
        for _ in range(db_circuit_breaker.failure_threshold):
            with pytest.raises(OperationalError):
                await repo.get("x")

        mock_db.get.reset_mock()
        with pytest.raises(CircuitBreakerError):
            await repo.get("x")
        mock_db.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commit_rolls_back_on_operational_error(self, mock_db):
        from spv_ledger.models.project import Project
        from spv_ledger.repositories.project_repo import ProjectRepository

        repo = ProjectRepository(Project, mock_db)
        mock_db.commit.side_effect = OperationalError("COMMIT", {}, Exception("down"))
        with pytest.raises(OperationalError):
            await repo.commit()
        mock_db.rollback.assert_awaited_once()
