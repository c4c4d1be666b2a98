"""Fixed-slot ring buffer shared between a producer and a consumer."""

from __future__ import annotations

import threading
from typing import Optional


class ShmRing:
    """Ring of ``slot_count`` slots of ``slot_size`` bytes each.

    One slot is always kept free, so at most ``slot_count - 1`` messages
    are held at once. ``push`` never blocks; ``pop`` waits for data.
    """

    def __init__(self, slot_count: int, slot_size: int) -> None:
        if slot_count < 1:
            raise ValueError("slot_count must be at least 1")
        if slot_size < 1:
            raise ValueError("slot_size must be at least 1")
        self._slot_count = slot_count
        self._slot_size = slot_size
        self._buffer = bytearray(slot_count * slot_size)
        self._lengths = [0] * slot_count
        self._head = 0
        self._tail = 0
        self._cond = threading.Condition()

    @property
    def slot_count(self) -> int:
        return self._slot_count

    @property
    def slot_size(self) -> int:
        return self._slot_size

    def __len__(self) -> int:
        with self._cond:
            return (self._tail - self._head) % self._slot_count

    def push(self, data: bytes | bytearray | memoryview) -> bool:
        """Copy ``data`` into the next slot; False if it is too big or the ring is full."""
        view = memoryview(data).cast("B")
        size = view.nbytes
        if size > self._slot_size:
            return False
        with self._cond:
            nxt = (self._tail + 1) % self._slot_count
            if nxt == self._head:
                return False
            start = self._tail * self._slot_size
            self._buffer[start:start + size] = view
            self._lengths[self._tail] = size
            self._tail = nxt
            self._cond.notify()
        return True

    def pop(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Remove and return the oldest message.

        Waits until one is available, or up to ``timeout`` seconds; returns
        None if the wait timed out.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._head != self._tail, timeout):
                return None
            start = self._head * self._slot_size
            data = bytes(self._buffer[start:start + self._lengths[self._head]])
            self._head = (self._head + 1) % self._slot_count
            return data