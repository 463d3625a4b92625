# erlink/utils/locks.py
import threading
from contextlib import contextmanager
from typing import Dict, Hashable


class KeyedLocks:
    """A lazily-populated lock per key (hospital id, case id).

    Serialises same-key mutations inside this process; row locks taken in the
    transaction cover other processes sharing the database.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        with self._lock_for(key):
            yield


hospital_locks = KeyedLocks()
case_locks = KeyedLocks()
