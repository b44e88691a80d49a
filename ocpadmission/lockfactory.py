"""Named locks handed out on demand."""

from __future__ import annotations

import threading


class DefaultLockFactory:
    """Hands out one lock per key, creating it on first request."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get_lock(self, key: str) -> threading.Lock:
        """Return the lock for ``key``; the same key always yields the same lock."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock