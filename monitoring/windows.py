from datetime import datetime, timedelta


class SlidingWindow:
    """
    Timestamps inside a trailing span, held in a fixed-capacity ring buffer.

    Capacity only needs to exceed the probe threshold by one: a probe trips
    (and resets) as soon as the count passes the threshold.
    """

    def __init__(self, span: timedelta, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.span = span
        self.capacity = capacity
        self._buf: list = [None] * capacity
        self._start = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def _evict_before(self, cutoff: datetime) -> None:
        while self._size and self._buf[self._start] < cutoff:
            self._buf[self._start] = None
            self._start = (self._start + 1) % self.capacity
            self._size -= 1

    def hit(self, now: datetime) -> int:
        """Record one occurrence at `now`; return how many fall inside the span."""
        if self._size == self.capacity:
            # Full: overwrite the oldest slot
            self._buf[self._start] = None
            self._start = (self._start + 1) % self.capacity
            self._size -= 1
        self._buf[(self._start + self._size) % self.capacity] = now
        self._size += 1
        self._evict_before(now - self.span)
        return self._size

    def reset(self) -> None:
        self._buf = [None] * self.capacity
        self._start = 0
        self._size = 0
