"""Asyncio helpers: bounded concurrency, retry with backoff, timeout races, polling."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_concurrency(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
    return_exceptions: bool = False,
) -> list[Any]:
    """Run zero-argument coroutine factories with at most ``limit`` in flight.

    Results are returned in input order regardless of completion order. The
    first failure propagates unless ``return_exceptions`` is set, in which case
    the exception object takes the failed task's slot.
    """
    if not tasks:
        return []
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run_one(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    return list(await asyncio.gather(
        *(_run_one(t) for t in tasks), return_exceptions=return_exceptions,
    ))


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    retry_condition: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """Call ``operation`` until it succeeds or attempts run out.

    The delay before attempt ``n + 1`` is ``min(base_delay * backoff_factor ** (n - 1), max_delay)``.
    When ``retry_condition`` rejects an exception it is re-raised immediately.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= attempts:
                raise
            if retry_condition is not None and not retry_condition(e):
                raise
            delay = min(base_delay * backoff_factor ** (attempt - 1), max_delay)
            logger.debug("Attempt %d/%d failed (%s), retrying in %.2fs",
                         attempt, attempts, e, delay)
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")


def _consume_result(fut: asyncio.Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.debug("Abandoned operation finished with error: %s", exc)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    message: str = "Operation timed out",
) -> T:
    """Race ``awaitable`` against ``timeout`` seconds.

    The losing operation is not cancelled; it keeps running in the background
    and its eventual error is consumed.
    """
    fut = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({fut}, timeout=timeout)
    if fut in done:
        return fut.result()
    fut.add_done_callback(_consume_result)
    raise TimeoutError(message)


async def poll(
    condition: Callable[[], Any],
    interval: float = 0.1,
    timeout: float = 5.0,
    message: str = "Condition not met within timeout",
) -> Any:
    """Evaluate ``condition`` (sync or async) every ``interval`` seconds until truthy."""
    start = time.monotonic()
    while True:
        value = condition()
        if inspect.isawaitable(value):
            value = await value
        if value:
            return value
        if time.monotonic() - start > timeout:
            raise TimeoutError(message)
        await asyncio.sleep(interval)


async def wait_for_page_ready(
    page: Any,
    dom_content_loaded: bool = True,
    network_idle: bool = False,
    min_wait_ms: int = 0,
    timeout_ms: int = 30000,
) -> None:
    """Wait for the page load states and a minimum settle delay concurrently."""
    waits: list[Awaitable[Any]] = []
    if dom_content_loaded:
        waits.append(page.wait_for_load_state("domcontentloaded", timeout=timeout_ms))
    if network_idle:
        waits.append(page.wait_for_load_state("networkidle", timeout=timeout_ms))
    if min_wait_ms > 0:
        waits.append(asyncio.sleep(min_wait_ms / 1000))
    if waits:
        await asyncio.gather(*waits)


async def safe_click(
    locator: Any,
    timeout_ms: int = 5000,
    retries: int = 3,
    retry_delay: float = 1.0,
    wait_for_visible: bool = True,
) -> None:
    """Click ``locator``, waiting for visibility first, retrying with a fixed delay."""

    async def _click() -> None:
        if wait_for_visible:
            await locator.wait_for(state="visible", timeout=timeout_ms)
        await locator.click(timeout=timeout_ms)

    await retry(
        _click,
        max_attempts=max(1, retries),
        base_delay=retry_delay,
        max_delay=retry_delay,
        backoff_factor=1.0,
    )
