"""
Recurring tasks for the polling probes.

Everything runs on the host's event loop; nothing here starts a thread.
`ManualScheduler` keeps its own virtual clock so probes can be driven
deterministically.
"""
import asyncio
import heapq
import itertools
from datetime import datetime, timedelta


class TaskHandle:
    def __init__(self, interval: timedelta, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False
        self._on_cancel = None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Scheduler:
    def every(self, interval: timedelta, callback) -> TaskHandle:
        raise NotImplementedError

    def active_tasks(self) -> int:
        raise NotImplementedError


class ManualScheduler(Scheduler):
    def __init__(self, start: datetime = None):
        self.now = start or datetime.utcnow()
        self._queue = []
        self._seq = itertools.count()
        self._tasks = set()

    def clock(self) -> datetime:
        return self.now

    def every(self, interval: timedelta, callback) -> TaskHandle:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        handle = TaskHandle(interval, callback)
        handle._on_cancel = lambda: self._tasks.discard(handle)
        self._tasks.add(handle)
        heapq.heappush(self._queue, (self.now + interval, next(self._seq), handle))
        return handle

    def active_tasks(self) -> int:
        return len(self._tasks)

    def run_pending(self) -> int:
        """Run every task due at the current virtual time. Returns how many ran."""
        ran = 0
        while self._queue and self._queue[0][0] <= self.now:
            due, _seq, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            ran += 1
            try:
                handle.callback()
            finally:
                if not handle.cancelled:
                    heapq.heappush(self._queue, (due + handle.interval, next(self._seq), handle))
        return ran

    def advance(self, seconds: float) -> int:
        """Move the virtual clock forward, firing tasks in due order."""
        target = self.now + timedelta(seconds=seconds)
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            self.now = max(self.now, self._queue[0][0])
            ran += self.run_pending()
        self.now = target
        return ran


class AsyncioScheduler(Scheduler):
    def __init__(self, loop: asyncio.AbstractEventLoop = None):
        self.loop = loop or asyncio.get_running_loop()
        self._timers = {}

    def every(self, interval: timedelta, callback) -> TaskHandle:
        handle = TaskHandle(interval, callback)
        delay = interval.total_seconds()

        def _fire():
            if handle.cancelled:
                return
            try:
                callback()
            finally:
                if not handle.cancelled:
                    self._timers[handle] = self.loop.call_later(delay, _fire)

        def _cancel():
            timer = self._timers.pop(handle, None)
            if timer is not None:
                timer.cancel()

        handle._on_cancel = _cancel
        self._timers[handle] = self.loop.call_later(delay, _fire)
        return handle

    def active_tasks(self) -> int:
        return len(self._timers)
