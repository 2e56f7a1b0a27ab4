"""
Timer scheduling for the session state machine.

Provides a scheduler protocol with an asyncio implementation and a manual
(virtual clock) implementation, plus a TimerTable that keeps at most one live
handle per timer role.
"""

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    """Anything a timer role can hold: timer handles and asyncio tasks."""

    def cancel(self) -> Any:
        ...


class Scheduler(Protocol):
    """
    Protocol for timer schedulers.

    Callbacks passed to call_later and call_repeating are synchronous and run
    to completion. Async work is started with spawn.
    """

    def now(self) -> float:
        """Current scheduler time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        ...

    def call_repeating(self, interval: float, callback: Callable[[], None]) -> Cancellable:
        ...

    async def sleep(self, delay: float) -> None:
        ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        ...


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed", exc_info=exc)


class _TaskSet:
    """Keeps spawned tasks referenced until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)
        return task

    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())


class _RepeatingTimer:
    """Re-arms itself on the event loop at a fixed period."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._next_at = loop.time() + interval
        self._cancelled = False
        self._handle = loop.call_at(self._next_at, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Scheduled from the previous deadline so ticks do not drift
        self._next_at += self._interval
        self._handle = self._loop.call_at(self._next_at, self._fire)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self) -> None:
        self._tasks = _TaskSet()

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        return asyncio.get_running_loop().call_later(max(delay, 0.0), callback)

    def call_repeating(self, interval: float, callback: Callable[[], None]) -> Cancellable:
        return _RepeatingTimer(asyncio.get_running_loop(), interval, callback)

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        return self._tasks.spawn(coro)


@dataclass(order=True)
class _ManualEntry:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    interval: float | None = field(default=None, compare=False)
    _cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """
    Scheduler driven by a virtual clock.

    Time only moves when advance() is awaited, which makes countdowns,
    deferred warnings and polling loops deterministic in tests and
    simulations.

    Example:
        >>> scheduler = ManualScheduler()
        >>> scheduler.call_repeating(1.0, tick)
        >>> await scheduler.advance(5)  # tick runs five times
    """

    def __init__(self, start: float = 0.0, settle_rounds: int = 20) -> None:
        """
        Initialize the scheduler.

        Args:
            start: Initial virtual time in seconds
            settle_rounds: Event loop passes granted to spawned tasks after each firing
        """
        self._now = start
        self._queue: list[_ManualEntry] = []
        self._seq = itertools.count()
        self._settle_rounds = settle_rounds
        self._tasks = _TaskSet()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        entry = _ManualEntry(self._now + max(delay, 0.0), next(self._seq), callback)
        heapq.heappush(self._queue, entry)
        return entry

    def call_repeating(self, interval: float, callback: Callable[[], None]) -> Cancellable:
        entry = _ManualEntry(self._now + interval, next(self._seq), callback, interval)
        heapq.heappush(self._queue, entry)
        return entry

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()

        def wake() -> None:
            if not future.done():
                future.set_result(None)

        entry = self.call_later(delay, wake)
        try:
            await future
        finally:
            entry.cancel()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        return self._tasks.spawn(coro)

    def live_timers(self) -> int:
        """Number of scheduled, non-cancelled timers (sleepers included)."""
        return sum(1 for entry in self._queue if not entry.cancelled())

    def pending_tasks(self) -> int:
        return self._tasks.pending()

    async def settle(self) -> None:
        """Let spawned tasks run until they block on the virtual clock."""
        for _ in range(self._settle_rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """
        Move the virtual clock forward, firing due timers in order.

        Args:
            seconds: How far to advance
        """
        target = self._now + seconds
        await self.settle()
        while True:
            entry = self._pop_due(target)
            if entry is None:
                break
            self._now = entry.due
            if entry.interval is not None:
                entry.due += entry.interval
                entry.seq = next(self._seq)
                heapq.heappush(self._queue, entry)
            entry.callback()
            await self.settle()
        self._now = target

    def _pop_due(self, target: float) -> _ManualEntry | None:
        while self._queue:
            entry = self._queue[0]
            if entry.cancelled():
                heapq.heappop(self._queue)
                continue
            if entry.due > target:
                return None
            return heapq.heappop(self._queue)
        return None


class TimerTable:
    """
    Registry of live timers keyed by role.

    Arming a role always cancels the handle it previously held, so each role
    has at most one live timer.
    """

    def __init__(self) -> None:
        self._handles: dict[str, Cancellable] = {}

    def arm(self, role: str, handle: Cancellable) -> Cancellable:
        self.cancel(role)
        self._handles[role] = handle
        return handle

    def cancel(self, role: str) -> bool:
        """
        Cancel the timer held by a role.

        Returns:
            True if a timer was cancelled, False if the role was empty
        """
        handle = self._handles.pop(role, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def release(self, role: str, handle: Cancellable | None = None) -> None:
        """
        Forget a role's timer without cancelling it (it has already fired).

        Args:
            role: Timer role
            handle: Only release if the role still holds this handle
        """
        if handle is None or self._handles.get(role) is handle:
            self._handles.pop(role, None)

    def cancel_all(self) -> None:
        for role in list(self._handles):
            self.cancel(role)

    def is_armed(self, role: str) -> bool:
        return role in self._handles

    def armed_roles(self) -> list[str]:
        return sorted(self._handles)
