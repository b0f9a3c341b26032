import threading
from contextlib import contextmanager
from typing import Iterator


class IdentityLocks:
    """One re-entrant lock per phone plus a lock over the waiting bucket.

    Acquisition order is always phone lock, then bucket lock.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._bucket_lock = threading.RLock()

    def _lock_for(self, phone: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(phone)
            if lock is None:
                lock = threading.RLock()
                self._locks[phone] = lock
            return lock

    @contextmanager
    def identity(self, phone: str) -> Iterator[None]:
        with self._lock_for(phone):
            yield

    @contextmanager
    def waiting_bucket(self) -> Iterator[None]:
        with self._bucket_lock:
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
