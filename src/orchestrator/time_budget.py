"""Wall-clock budgets for async work.

`TimeBudget.run()` races one awaitable against a deadline. The work is not
cancelled when the deadline wins: it keeps running in the background as an
abandoned task whose eventual result or exception is consumed and dropped.
`abandoned()` and `drain()` let a caller see or join that leftover work at
shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from src.core.exceptions import TimeoutExceeded

logger = logging.getLogger("trendforge.orchestrator.time_budget")

T = TypeVar("T")

_abandoned: set[asyncio.Task] = set()


def _discard(task: asyncio.Task) -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned task %s finished with %s: %s", task.get_name(), type(exc).__name__, exc)
    else:
        logger.debug("Abandoned task %s finished", task.get_name())


class TimeBudget:
    """Deadline race around a single async operation. No retries."""

    @staticmethod
    async def run(label: str, budget_seconds: float, fn: Callable[[], Awaitable[T]]) -> T:
        """Await `fn()` for at most `budget_seconds`.

        Returns the work's result, or re-raises its exception unchanged, if it
        settles first.

        Raises:
            TimeoutExceeded: If the deadline fires first.
        """
        logger.info("Starting %s (budget %gs)", label, budget_seconds)
        started = time.monotonic()
        task = asyncio.ensure_future(fn())
        task.set_name(label)

        done, _ = await asyncio.wait({task}, timeout=budget_seconds)
        elapsed = time.monotonic() - started

        if task in done:
            logger.info("Completed %s in %.1fs", label, elapsed, extra={"duration": elapsed})
            return task.result()

        _abandoned.add(task)
        task.add_done_callback(_discard)
        logger.warning(
            "%s exceeded budget: %.1fs / %gs", label, elapsed, budget_seconds,
            extra={"duration": elapsed},
        )
        raise TimeoutExceeded(label, elapsed, budget_seconds)

    @staticmethod
    def abandoned() -> list[asyncio.Task]:
        """Timed-out tasks on the running event loop that are still running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        return [
            task for task in _abandoned
            if not task.done() and (loop is None or task.get_loop() is loop)
        ]

    @staticmethod
    async def drain(timeout: Optional[float] = None) -> int:
        """Wait for abandoned tasks to settle. Returns how many are still running."""
        pending = TimeBudget.abandoned()
        if not pending:
            return 0
        logger.info("Waiting for %d abandoned task(s)", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return len(still_running)
