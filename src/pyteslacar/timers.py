"""Task scheduler capability used for polling and follow-up refreshes."""

from __future__ import annotations

import asyncio
import datetime as dt
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

_logger = logging.getLogger(__name__)

ScheduledCallable = Callable[[], Awaitable[None] | None]


def seconds_until(at: dt.time, now: dt.datetime) -> float:
    """Seconds from *now* until the next occurrence of the wall-clock time *at*."""
    target = now.replace(hour=at.hour, minute=at.minute, second=at.second, microsecond=0)
    if target <= now:
        target += dt.timedelta(days=1)
    return (target - now).total_seconds()


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class TaskScheduler(Protocol):
    """Deferred execution provided by the host.

    ``after`` runs *task* once after *delay* seconds; ``every_day`` runs it
    daily at the given local time. Both return a handle with ``cancel()``.
    """

    def after(self, delay: float, task: ScheduledCallable) -> Cancellable:
        ...

    def every_day(self, at: dt.time, task: ScheduledCallable) -> Cancellable:
        ...


class _Handle:
    def __init__(self, owner: AsyncioTaskScheduler) -> None:
        self._owner = owner
        self._timer: asyncio.TimerHandle | None = None
        self.cancelled = False

    def _arm(self, timer: asyncio.TimerHandle) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._owner._forget(self)


class AsyncioTaskScheduler:
    """:class:`TaskScheduler` on top of the running event loop.

    Coroutine tasks are wrapped in :func:`asyncio.create_task`; their
    exceptions are logged, never re-raised into the loop.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        now: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self._loop = loop
        self._now = now
        self._handles: set[_Handle] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _forget(self, handle: _Handle) -> None:
        self._handles.discard(handle)

    def _run(self, task: ScheduledCallable) -> None:
        try:
            result = task()
        except Exception:
            _logger.exception("Scheduled task failed")
            return
        if inspect.isawaitable(result):
            running = asyncio.ensure_future(result, loop=self._get_loop())
            self._tasks.add(running)
            running.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Scheduled task failed", exc_info=exc)

    def after(self, delay: float, task: ScheduledCallable) -> _Handle:
        handle = _Handle(self)

        def fire() -> None:
            self._forget(handle)
            self._run(task)

        handle._arm(self._get_loop().call_later(max(0.0, delay), fire))
        self._handles.add(handle)
        return handle

    def every_day(self, at: dt.time, task: ScheduledCallable) -> _Handle:
        handle = _Handle(self)

        def arm() -> None:
            delay = seconds_until(at, self._now())
            _logger.debug("Daily task due in %.0fs", delay)
            handle._arm(self._get_loop().call_later(delay, fire))

        def fire() -> None:
            if handle.cancelled:
                return
            self._run(task)
            arm()

        arm()
        self._handles.add(handle)
        return handle

    def cancel_all(self) -> None:
        """Cancel pending timers and running scheduled coroutines."""
        for handle in list(self._handles):
            handle.cancel()
        for running in list(self._tasks):
            running.cancel()
        self._tasks.clear()
