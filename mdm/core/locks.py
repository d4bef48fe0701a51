"""
Keyed mutual exclusion.

Writers that must serialise per record (or per approval request) take a
lock for that key only; different keys proceed in parallel.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """A lazily-populated family of re-entrant locks indexed by key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = defaultdict(threading.RLock)

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            return self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield
