"""Tests for the asyncio helpers: bounded concurrency, retry, timeout races and polling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from a11y_audit.utils.async_utils import (
    poll,
    retry,
    run_with_concurrency,
    safe_click,
    wait_for_page_ready,
    with_timeout,
)


# ============================================================================
# run_with_concurrency
# ============================================================================


class TestRunWithConcurrency:
    @pytest.mark.asyncio
    async def test_never_exceeds_limit_and_keeps_input_order(self):
        """Five tasks with limit 2: at most two in flight, results by index."""
        in_flight = 0
        peak = 0
        delays = [0.05, 0.01, 0.04, 0.02, 0.03]

        def make(i, delay):
            async def task():
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(delay)
                in_flight -= 1
                return i
            return task

        results = await run_with_concurrency([make(i, d) for i, d in enumerate(delays)], 2)
        assert results == [0, 1, 2, 3, 4]
        assert peak == 2

    @pytest.mark.asyncio
    async def test_empty_task_list(self):
        assert await run_with_concurrency([], 3) == []

    @pytest.mark.asyncio
    async def test_limit_one_runs_in_order(self):
        order = []

        def make(i):
            async def task():
                order.append(f"start-{i}")
                await asyncio.sleep(0)
                order.append(f"end-{i}")
                return i
            return task

        await run_with_concurrency([make(i) for i in range(3)], 1)
        assert order == ["start-0", "end-0", "start-1", "end-1", "start-2", "end-2"]

    @pytest.mark.asyncio
    async def test_failure_propagates(self):
        async def ok():
            return 1

        async def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await run_with_concurrency([ok, boom, ok], 2)

    @pytest.mark.asyncio
    async def test_return_exceptions_keeps_slot(self):
        async def ok():
            return "ok"

        async def boom():
            raise ValueError("boom")

        results = await run_with_concurrency([ok, boom], 2, return_exceptions=True)
        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)

    @pytest.mark.asyncio
    async def test_non_positive_limit_treated_as_one(self):
        async def task():
            return 7

        assert await run_with_concurrency([task, task], 0) == [7, 7]


# ============================================================================
# retry
# ============================================================================


class TestRetry:
    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self):
        op = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "done"])
        result = await retry(op, max_attempts=3, base_delay=0.001)
        assert result == "done"
        assert op.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_rethrows_last_error_unmodified(self):
        last = RuntimeError("third")
        op = AsyncMock(side_effect=[RuntimeError("first"), RuntimeError("second"), last])
        with pytest.raises(RuntimeError) as exc_info:
            await retry(op, max_attempts=3, base_delay=0.001)
        assert exc_info.value is last
        assert op.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_condition_false_stops_immediately(self):
        op = AsyncMock(side_effect=ValueError("fatal"))
        with pytest.raises(ValueError, match="fatal"):
            await retry(op, max_attempts=5, base_delay=0.001,
                        retry_condition=lambda e: "transient" in str(e))
        assert op.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_delays_capped(self, monkeypatch):
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        monkeypatch.setattr("a11y_audit.utils.async_utils.asyncio.sleep", fake_sleep)
        op = AsyncMock(side_effect=[RuntimeError()] * 4 + ["ok"])
        await retry(op, max_attempts=5, base_delay=1.0, max_delay=3.0, backoff_factor=2.0)
        assert sleeps == [1.0, 2.0, 3.0, 3.0]


# ============================================================================
# with_timeout
# ============================================================================


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_fast_operation_wins(self):
        async def fast():
            return "value"

        assert await with_timeout(fast(), 1.0) == "value"

    @pytest.mark.asyncio
    async def test_operation_error_propagates(self):
        async def failing():
            raise KeyError("inner")

        with pytest.raises(KeyError):
            await with_timeout(failing(), 1.0)

    @pytest.mark.asyncio
    async def test_timeout_raises_without_cancelling_loser(self):
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()
            return "late"

        with pytest.raises(TimeoutError, match="too slow"):
            await with_timeout(slow(), 0.01, "too slow")
        await asyncio.wait_for(finished.wait(), 1.0)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_abandoned_failure_is_consumed(self):
        async def slow_fail():
            await asyncio.sleep(0.02)
            raise RuntimeError("late failure")

        with pytest.raises(TimeoutError):
            await with_timeout(slow_fail(), 0.005)
        await asyncio.sleep(0.05)


# ============================================================================
# poll
# ============================================================================


class TestPoll:
    @pytest.mark.asyncio
    async def test_sync_condition(self):
        calls = iter([False, False, True])
        assert await poll(lambda: next(calls), interval=0.001, timeout=1.0) is True

    @pytest.mark.asyncio
    async def test_async_condition(self):
        state = {"n": 0}

        async def ready():
            state["n"] += 1
            return state["n"] >= 2

        assert await poll(ready, interval=0.001, timeout=1.0)
        assert state["n"] == 2

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(TimeoutError, match="never"):
            await poll(lambda: False, interval=0.005, timeout=0.02, message="never")


# ============================================================================
# Page helpers
# ============================================================================


class TestPageHelpers:
    @pytest.mark.asyncio
    async def test_wait_for_page_ready_waits_for_requested_states(self, mock_page):
        await wait_for_page_ready(mock_page, dom_content_loaded=True, network_idle=True,
                                  min_wait_ms=1, timeout_ms=100)
        states = [c.args[0] for c in mock_page.wait_for_load_state.await_args_list]
        assert states == ["domcontentloaded", "networkidle"]

    @pytest.mark.asyncio
    async def test_safe_click_waits_for_visibility(self):
        locator = MagicMock()
        locator.wait_for = AsyncMock()
        locator.click = AsyncMock()
        await safe_click(locator, timeout_ms=100, retries=2, retry_delay=0.001)
        locator.wait_for.assert_awaited_once_with(state="visible", timeout=100)
        locator.click.assert_awaited_once_with(timeout=100)

    @pytest.mark.asyncio
    async def test_safe_click_retries_then_raises(self):
        locator = MagicMock()
        locator.wait_for = AsyncMock()
        locator.click = AsyncMock(side_effect=RuntimeError("detached"))
        with pytest.raises(RuntimeError, match="detached"):
            await safe_click(locator, timeout_ms=100, retries=3, retry_delay=0.001)
        assert locator.click.await_count == 3
