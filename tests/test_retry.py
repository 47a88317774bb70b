"""Test retry executor and back-off schedule"""

import asyncio

import pytest

from chunkpipe.control.retry import RetryPolicy, execute_with_retry
from chunkpipe.control.token import TaskToken
from chunkpipe.exceptions import ProcessorError, TaskCancelledError


class FlakyOperation:
    """Fails a fixed number of times, then returns a value"""

    def __init__(self, failures: int, result="ok"):
        self.failures = failures
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return self.result


class TestRetryPolicy:
    """Test delay computation"""

    def test_default_delays(self):
        policy = RetryPolicy()
        delays = [policy.delay_for(n) for n in range(8)]
        assert delays == [0, 1000, 2000, 3000, 4000, 5000, 5000, 5000]

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_ms=-1)
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestExecuteWithRetry:
    """Test retry loop behaviour"""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        token = TaskToken()
        operation = FlakyOperation(0, result=42)

        assert await execute_with_retry(operation, token) == 42
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_sync_operation(self):
        token = TaskToken()
        assert await execute_with_retry(lambda: "sync", token) == "sync"

    @pytest.mark.asyncio
    async def test_delay_sequence(self, monkeypatch):
        token = TaskToken()
        delays = []

        async def record_delay(ms):
            delays.append(ms)

        monkeypatch.setattr(token, "delay", record_delay)
        operation = FlakyOperation(7)

        assert await execute_with_retry(operation, token) == "ok"
        assert delays == [0, 1000, 2000, 3000, 4000, 5000, 5000]
        assert operation.calls == 8

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self):
        token = TaskToken()
        token.cancel()
        operation = FlakyOperation(0)

        with pytest.raises(TaskCancelledError):
            await execute_with_retry(operation, token)
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, wait_until):
        token = TaskToken()
        operation = FlakyOperation(1000)
        policy = RetryPolicy(base_delay_ms=60_000, max_delay_ms=60_000)

        runner = asyncio.ensure_future(execute_with_retry(operation, token, policy))
        await wait_until(lambda: operation.calls == 2 and token.pending_delays == 1)

        token.cancel()

        with pytest.raises(TaskCancelledError):
            await asyncio.wait_for(runner, 1)
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_pause_holds_next_attempt(self, wait_until):
        token = TaskToken()
        operation = FlakyOperation(2)
        policy = RetryPolicy(base_delay_ms=60_000, max_delay_ms=60_000)

        runner = asyncio.ensure_future(execute_with_retry(operation, token, policy))
        await wait_until(lambda: operation.calls == 2 and token.pending_delays == 1)

        token.pause()
        await asyncio.sleep(0.02)
        assert operation.calls == 2
        assert not runner.done()

        token.resume()
        assert await asyncio.wait_for(runner, 1) == "ok"
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_interrupted_operation_is_retried(self, fast_policy):
        token = TaskToken()
        seen = []

        async def operation():
            seen.append(token.signal)
            if len(seen) == 1:
                token.pause()
                raise RuntimeError("interrupted")
            return "done"

        runner = asyncio.ensure_future(execute_with_retry(operation, token, fast_policy))
        await asyncio.sleep(0.01)
        assert len(seen) == 1

        token.resume()
        assert await asyncio.wait_for(runner, 1) == "done"
        assert seen[0].fired
        assert not seen[1].fired

    @pytest.mark.asyncio
    async def test_max_attempts(self, fast_policy):
        token = TaskToken()
        operation = FlakyOperation(10)
        policy = RetryPolicy(base_delay_ms=1, max_delay_ms=1, max_attempts=3)

        with pytest.raises(ProcessorError) as exc_info:
            await execute_with_retry(operation, token, policy)

        assert exc_info.value.attempts == 3
        assert operation.calls == 3
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_task_cancellation_not_retried(self, fast_policy):
        token = TaskToken()
        calls = []

        async def operation():
            calls.append(1)
            await asyncio.sleep(60)

        runner = asyncio.ensure_future(execute_with_retry(operation, token, fast_policy))
        await asyncio.sleep(0.01)
        runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await runner
        assert len(calls) == 1
