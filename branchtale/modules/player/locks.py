from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

from branchtale.modules.mechanics.errors import SessionBusyError


class SessionLockRegistry:
    """One lock per play session id, created on demand.

    Locks live in a weak-value map, so a session nobody is touching costs
    nothing; a lock stays alive while any caller holds a reference.
    """

    def __init__(self, timeout_s: float = 10.0) -> None:
        self.timeout_s = timeout_s
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, session_id: object) -> Iterator[None]:
        key = str(session_id)
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout_s):
            raise SessionBusyError(
                "Another request is still updating this play session",
                details={"session_id": key},
            )
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
