"""Tests for the retry policy."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from codex_explain.core.retry import RetryPolicy, call_with_retry


class TestRetryPolicy:
    def test_linear_delays(self) -> None:
        policy = RetryPolicy(base_delay=0.25)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [0.25, 0.5, 0.75]

    def test_exponential_delays(self) -> None:
        policy = RetryPolicy(base_delay=0.5, backoff="exponential")
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)


class TestCallWithRetry:
    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self) -> None:
        fn = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await call_with_retry(fn, RetryPolicy(), sleep=sleep) == "ok"
        fn.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self) -> None:
        fn = AsyncMock(side_effect=[RuntimeError("one"), RuntimeError("two"), "ok"])
        sleep = AsyncMock()

        assert await call_with_retry(fn, RetryPolicy(max_attempts=3, base_delay=0.25), sleep=sleep) == "ok"
        assert fn.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [0.25, 0.5]

    @pytest.mark.asyncio
    async def test_last_error_propagates(self) -> None:
        fn = AsyncMock(side_effect=[RuntimeError("one"), RuntimeError("two")])
        sleep = AsyncMock()

        with pytest.raises(RuntimeError, match="two"):
            await call_with_retry(fn, RetryPolicy(max_attempts=2), sleep=sleep)
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self) -> None:
        fn = AsyncMock(side_effect=RuntimeError("down"))
        sleep = AsyncMock()

        with pytest.raises(RuntimeError):
            await call_with_retry(fn, RetryPolicy(max_attempts=1), sleep=sleep)
        sleep.assert_not_awaited()
