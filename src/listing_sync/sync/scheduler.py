"""Fixed-interval poll scheduler with an in-flight guard."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from enum import StrEnum

from listing_sync.logging import get_logger

logger = get_logger(__name__)


class SchedulerState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"


class PollScheduler:
    """Runs an async cycle every ``interval_seconds``, one cycle at a time.

    A tick that arrives while a cycle is still outstanding is dropped, so a
    slow backend stretches the effective period instead of stacking
    requests. The guard is released whether the cycle succeeds or raises.

    ``tick()`` can be awaited directly to drive cycles deterministically.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[None]],
        *,
        interval_seconds: float,
    ) -> None:
        self._cycle = cycle
        self._interval = interval_seconds
        self._state = SchedulerState.IDLE
        self._timer: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        """Whether the interval timer is active."""
        return self._timer is not None and not self._timer.done()

    async def tick(self) -> bool:
        """Run one cycle unless one is already in flight.

        Returns:
            True if a cycle ran, False if the tick was skipped.
        """
        if self._state is SchedulerState.POLLING:
            logger.debug("poll_tick_skipped", reason="cycle_in_flight")
            return False

        self._state = SchedulerState.POLLING
        try:
            await self._cycle()
        except Exception:
            logger.error("poll_cycle_failed", exc_info=True)
        finally:
            self._state = SchedulerState.IDLE
        return True

    def _fire(self) -> bool:
        if self._state is SchedulerState.POLLING:
            logger.debug("poll_tick_skipped", reason="cycle_in_flight")
            return False
        task = asyncio.create_task(self.tick())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._fire()

    def start(self, *, immediate: bool = True) -> None:
        """Start the interval timer (idempotent).

        Args:
            immediate: Also run a cycle right away instead of waiting one period.
        """
        if self.running:
            return
        logger.info("poll_scheduler_started", interval_seconds=self._interval)
        if immediate:
            self._fire()
        self._timer = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Stop scheduling new cycles. An in-flight cycle is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("poll_scheduler_stopped")

    def request_refresh(self) -> bool:
        """Run a cycle now, outside the regular period (still guarded)."""
        return self._fire()

    async def dispose(self) -> None:
        """Stop the timer and wait for any outstanding cycle to complete."""
        timer = self._timer
        self.stop()
        if timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if self._pending:
            await asyncio.gather(*self._pending)
