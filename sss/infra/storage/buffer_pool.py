"""Reusable part buffers shared between writers."""

from __future__ import annotations

import threading


class BufferPool:
    """Hands out ``bytearray`` buffers and takes them back cleared.

    Clearing a ``bytearray`` frees its storage, so the pool recycles buffer
    objects rather than their capacity. Writers regrow a reused buffer as
    they fill it.

    A buffer belongs to exactly one writer between ``acquire`` and
    ``release``. ``max_idle`` caps how many released buffers are kept around;
    extra buffers are dropped and left to the garbage collector.
    """

    def __init__(self, *, max_idle: int | None = None) -> None:
        self._max_idle = max_idle
        self._idle: list[bytearray] = []
        self._lock = threading.Lock()

    def acquire(self) -> bytearray:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return bytearray()

    def release(self, buffer: bytearray) -> None:
        buffer.clear()
        with self._lock:
            if self._max_idle is not None and len(self._idle) >= self._max_idle:
                return
            if any(existing is buffer for existing in self._idle):
                return
            self._idle.append(buffer)

    @property
    def idle(self) -> int:
        with self._lock:
            return len(self._idle)


_default_pool = BufferPool()


def get_default_pool() -> BufferPool:
    return _default_pool
