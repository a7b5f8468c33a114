"""Tests for RetryPolicy and execute_with_retry."""

import pytest

from folio.core.errors import (
    InvalidConfigError,
    StorageError,
    TransientError,
    ValidationError,
)
from folio.execution.retry import (
    NO_RETRY,
    UPLOAD_POLICY,
    RetryPolicy,
    execute_with_retry,
    with_retry,
)


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.initial_delay == 1.0
        assert policy.max_delay == 10.0
        assert policy.backoff_multiplier == 2.0
        assert policy.retryable_kinds is None

    def test_delay_sequence_is_capped(self):
        policy = RetryPolicy(max_attempts=6, initial_delay=1.0, max_delay=10.0)
        assert [policy.delay_for(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"initial_delay": -1},
            {"initial_delay": 5, "max_delay": 1},
            {"backoff_multiplier": 0.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(InvalidConfigError):
            RetryPolicy(**kwargs)

    def test_empty_kind_list_defers_to_transient_flag(self):
        policy = RetryPolicy(retryable_kinds=[])
        assert policy.retryable_kinds is None
        assert policy.is_retryable(TransientError("t")) is True
        assert policy.is_retryable(ValidationError("v")) is False

    def test_kind_allow_list(self):
        policy = RetryPolicy().with_kinds(["STORAGE_TIMEOUT"])
        assert policy.is_retryable(StorageError("x", kind="STORAGE_TIMEOUT")) is True
        # Transient but not listed.
        assert policy.is_retryable(StorageError("x", kind="STORAGE_THROTTLED")) is False

    def test_unknown_errors_are_not_retryable(self):
        assert RetryPolicy().is_retryable(ValueError("bug")) is False

    def test_upload_policy(self):
        assert UPLOAD_POLICY.max_attempts == 3
        assert [UPLOAD_POLICY.delay_for(n) for n in range(2)] == [1.0, 2.0]

    def test_no_retry(self):
        assert NO_RETRY.max_attempts == 1


class TestExecuteWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self, sleep, flaky):
        op = flaky(0, TransientError("t"), value=42)
        assert await execute_with_retry(op, RetryPolicy(), sleep=sleep) == 42
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, sleep, flaky):
        op = flaky(2, TransientError("t"), value="done")
        assert await execute_with_retry(op, RetryPolicy(), sleep=sleep) == "done"
        assert op.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempts", [1, 2, 3, 5])
    async def test_permanent_retryable_failure_invokes_exactly_max_attempts(
        self, sleep, flaky, attempts
    ):
        policy = RetryPolicy(max_attempts=attempts, initial_delay=0.5, max_delay=3.0)
        op = flaky(99, TransientError("down"))
        with pytest.raises(TransientError, match="down"):
            await execute_with_retry(op, policy, sleep=sleep)
        assert op.calls == attempts
        assert sleep.delays == [policy.delay_for(n) for n in range(attempts - 1)]

    @pytest.mark.asyncio
    async def test_non_retryable_fails_once(self, sleep, flaky):
        op = flaky(99, ValidationError("bad"))
        with pytest.raises(ValidationError):
            await execute_with_retry(op, RetryPolicy(max_attempts=5), sleep=sleep)
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_on_retry_hook(self, sleep, flaky):
        seen = []
        op = flaky(2, TransientError("t"))
        await execute_with_retry(
            op, RetryPolicy(), sleep=sleep, on_retry=lambda a, e, d: seen.append((a, d))
        )
        assert seen == [(1, 1.0), (2, 2.0)]

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self, sleep, flaky):
        op = flaky(1, ConnectionError("reset"))
        assert await execute_with_retry(op, RetryPolicy(), sleep=sleep) == "ok"
        assert op.calls == 2


class TestWithRetryDecorator:
    @pytest.mark.asyncio
    async def test_decorated_function_is_retried(self):
        calls = []

        @with_retry(RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0))
        async def fetch(x):
            calls.append(x)
            if len(calls) < 2:
                raise TransientError("flaky")
            return x * 2

        assert await fetch(21) == 42
        assert calls == [21, 21]
        assert fetch.__name__ == "fetch"
