"""
Unit tests for RetryHandler, RunContext and ShutdownHandler
"""

import asyncio

import pymysql
import pytest

from schema_sync.core.config import Settings
from schema_sync.core.context import DeadlineExceeded, OperationCancelled, RunContext
from schema_sync.core.errors import ErrorType, connection_error, validation_error
from schema_sync.core.retry import RetryConfig, RetryHandler
from schema_sync.core.shutdown import ShutdownHandler


def fast_retry(max_attempts: int = 3) -> RetryHandler:
    return RetryHandler(RetryConfig(max_attempts=max_attempts, base_delay=0.001, max_delay=0.01))


class FlakyOperation:
    """Fails a fixed number of times before succeeding"""

    def __init__(self, failures: int, exc: Exception):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


# ============================================================================
# RetryConfig Tests
# ============================================================================

class TestRetryConfig:
    """Backoff computation"""

    def test_defaults(self):
        config = RetryConfig()

        assert config.max_attempts == 3
        assert [config.calculate_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay=10, max_delay=15)

        assert config.calculate_delay(3) == 15

    def test_from_settings(self):
        settings = Settings(RETRY_MAX_ATTEMPTS=5, RETRY_BASE_DELAY=0.5)

        config = RetryConfig.from_settings(settings)

        assert config.max_attempts == 5
        assert config.base_delay == 0.5

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


# ============================================================================
# RetryHandler Tests
# ============================================================================

class TestRetryHandler:
    """RetryHandler.execute_with_retry"""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        operation = FlakyOperation(0, RuntimeError())

        assert await fast_retry().execute_with_retry(operation, "op") == "ok"
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_recoverable_error_is_retried(self):
        operation = FlakyOperation(2, pymysql.err.OperationalError(2013, "Lost connection"))

        assert await fast_retry().execute_with_retry(operation, "op") == "ok"
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_non_recoverable_error_is_not_retried(self):
        operation = FlakyOperation(5, pymysql.err.OperationalError(1045, "Access denied"))

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(operation, "op")

        assert exc_info.value.error_type == ErrorType.PERMISSION
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_validation_error_is_not_retried(self):
        operation = FlakyOperation(5, validation_error("bad"))

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(operation, "op")

        assert exc_info.value.error_type == ErrorType.VALIDATION
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_exhausted_attempts(self):
        operation = FlakyOperation(10, connection_error("refused"))

        with pytest.raises(Exception) as exc_info:
            await fast_retry(max_attempts=3).execute_with_retry(operation, "connect")

        assert exc_info.value.error_type == ErrorType.CONNECTION
        assert exc_info.value.context["attempts"] == 3
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_cancelled_context_is_interruption(self):
        ctx = RunContext()
        ctx.cancel()
        operation = FlakyOperation(0, RuntimeError())

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(operation, "op", ctx)

        assert exc_info.value.error_type == ErrorType.INTERRUPTION
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_operation(self):
        ctx = RunContext()

        async def slow():
            ctx.cancel()
            await asyncio.sleep(10)

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(slow, "op", ctx)

        assert exc_info.value.error_type == ErrorType.INTERRUPTION

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        ctx = RunContext()
        handler = RetryHandler(RetryConfig(max_attempts=3, base_delay=10))

        async def fail_then_cancel():
            asyncio.get_running_loop().call_later(0.01, ctx.cancel)
            raise connection_error("refused")

        with pytest.raises(Exception) as exc_info:
            await handler.execute_with_retry(fail_then_cancel, "op", ctx)

        assert exc_info.value.error_type == ErrorType.INTERRUPTION

    @pytest.mark.asyncio
    async def test_deadline_is_timeout(self):
        ctx = RunContext(timeout=0.05)

        async def hang():
            await asyncio.sleep(10)

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(hang, "op", ctx)

        assert exc_info.value.error_type == ErrorType.TIMEOUT

    @pytest.mark.asyncio
    async def test_expired_deadline_before_first_attempt(self):
        ctx = RunContext(timeout=0)
        operation = FlakyOperation(0, RuntimeError())

        with pytest.raises(Exception) as exc_info:
            await fast_retry().execute_with_retry(operation, "op", ctx)

        assert exc_info.value.error_type == ErrorType.TIMEOUT
        assert operation.calls == 0


# ============================================================================
# RunContext Tests
# ============================================================================

class TestRunContext:
    """RunContext behaviour"""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        async def answer():
            return 42

        assert await RunContext(timeout=1).run(answer()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self):
        async def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await RunContext().run(broken())

    @pytest.mark.asyncio
    async def test_run_times_out(self):
        with pytest.raises(DeadlineExceeded):
            await RunContext(timeout=0.01).run(asyncio.sleep(10))

    @pytest.mark.asyncio
    async def test_sleep_is_cancellable(self):
        ctx = RunContext()
        asyncio.get_running_loop().call_later(0.01, ctx.cancel)

        with pytest.raises(OperationCancelled):
            await ctx.sleep(10)

    def test_err_and_remaining(self):
        ctx = RunContext()
        assert ctx.err() is None
        assert ctx.remaining() is None

        ctx.cancel()
        assert isinstance(ctx.err(), OperationCancelled)
        with pytest.raises(OperationCancelled):
            ctx.check()

    def test_expired_deadline(self):
        ctx = RunContext(timeout=0)

        assert ctx.deadline_exceeded
        assert ctx.remaining() == 0.0
        assert isinstance(ctx.err(), DeadlineExceeded)


# ============================================================================
# ShutdownHandler Tests
# ============================================================================

class TestShutdownHandler:
    """ShutdownHandler behaviour"""

    @pytest.mark.asyncio
    async def test_callbacks_run_in_reverse_order(self):
        calls = []
        handler = ShutdownHandler()
        handler.register(lambda: calls.append("first"))

        async def second():
            calls.append("second")

        handler.register(second)

        await handler.shutdown()

        assert calls == ["second", "first"]
        assert handler.done

    @pytest.mark.asyncio
    async def test_runs_only_once(self):
        calls = []
        handler = ShutdownHandler()
        handler.register(lambda: calls.append("x"))

        await handler.shutdown()
        await handler.shutdown()

        assert calls == ["x"]

    @pytest.mark.asyncio
    async def test_registering_after_shutdown(self):
        calls = []
        handler = ShutdownHandler()
        handler.register(lambda: calls.append("first run"))
        await handler.shutdown()

        handler.register(lambda: calls.append("second run"))
        assert not handler.done
        await handler.shutdown()

        assert calls == ["first run", "second run"]
        assert handler.done

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self):
        calls = []
        handler = ShutdownHandler()
        handler.register(lambda: calls.append("kept"))

        def broken():
            raise RuntimeError("close failed")

        handler.register(broken)

        await handler.shutdown()

        assert calls == ["kept"]
