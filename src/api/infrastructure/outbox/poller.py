"""Background poller for the outbox publisher.

The poller runs as a pair of asyncio tasks inside the FastAPI application:
a timer that requests a tick every interval, and a single worker that
executes requested ticks one at a time. Immediate-processing hints from
the publisher enqueue onto the same worker, so timer ticks and hints can
never overlap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared_kernel.outbox.observability import OutboxPublisherProbe


@dataclass(frozen=True)
class TickOutcome:
    """Counts for one completed poll tick."""

    claimed: int
    delivered: int
    failed: int


class OutboxPoller:
    """Single-flight driver for poll ticks.

    Requests are held in a queue with room for one pending request. A hint
    that arrives while a request is already pending is absorbed by it, and
    a timer firing while a tick is in flight is dropped. ``run_once`` is
    guarded by a lock, so a tick started directly never overlaps one
    started by the worker.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[TickOutcome]],
        probe: OutboxPublisherProbe,
        interval_seconds: float,
    ) -> None:
        """Initialize the poller.

        Args:
            tick: Coroutine function that processes one batch of due events
            probe: Observability probe for tick outcomes
            interval_seconds: Timer period
        """
        self._tick = tick
        self._probe = probe
        self._interval = interval_seconds
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._requests: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._running = False
        self._timer_task: asyncio.Task | None = None
        self._worker_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Whether the timer and worker tasks are active."""
        return self._running

    @property
    def tick_in_flight(self) -> bool:
        """Whether a tick is executing right now."""
        return self._lock.locked()

    async def start(self) -> None:
        """Start the timer and worker tasks. Does nothing if already running."""
        if self._running:
            return
        self._running = True
        self._worker_task = asyncio.create_task(self._worker_loop())
        self._timer_task = asyncio.create_task(self._timer_loop())

    async def stop(self) -> None:
        """Stop polling, letting an in-flight tick finish first.

        After this returns no tick is executing and none will start from
        the timer or from hints.
        """
        if not self._running:
            return
        self._running = False

        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        while not self._idle.is_set():
            await self._idle.wait()

        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        # Drop a request that was queued but never picked up
        while not self._requests.empty():
            self._requests.get_nowait()

    def request(self, source: str = "hint") -> bool:
        """Ask the worker to run a tick soon.

        Args:
            source: Label reported to the probe (e.g., "publish", "timer")

        Returns:
            True if a new request was queued, False if it was coalesced
            into a pending one or the poller is not running
        """
        if not self._running:
            return False
        try:
            self._requests.put_nowait(source)
        except asyncio.QueueFull:
            return False
        self._probe.processing_requested(source)
        return True

    async def run_once(self) -> TickOutcome | None:
        """Run one tick unless another is already in flight.

        Returns:
            The tick's outcome, or None if it was skipped or failed
        """
        if self._lock.locked():
            self._probe.tick_skipped("tick_in_flight")
            return None
        return await self._run_locked()

    async def _run_locked(self) -> TickOutcome | None:
        """Run one tick, waiting for any tick in flight to finish first."""
        async with self._lock:
            self._idle.clear()
            try:
                outcome = await self._tick()
            except Exception as e:
                self._probe.poll_error(str(e))
                return None
            finally:
                self._idle.set()

        self._probe.tick_completed(outcome.claimed, outcome.delivered, outcome.failed)
        return outcome

    async def _timer_loop(self) -> None:
        """Request a tick every interval, dropping ticks that would overlap."""
        while self._running:
            await asyncio.sleep(self._interval)
            if self._lock.locked():
                self._probe.tick_skipped("timer_overlap")
                continue
            self.request("timer")

    async def _worker_loop(self) -> None:
        """Execute queued tick requests one at a time.

        A request that arrives while a direct ``run_once`` holds the lock
        waits for it, so events stored after that tick claimed its batch
        are still picked up.
        """
        while True:
            await self._requests.get()
            try:
                if not self._running:
                    continue
                await self._run_locked()
            finally:
                self._requests.task_done()
