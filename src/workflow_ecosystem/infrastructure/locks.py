"""Per-key mutual exclusion.

Mutations of one workflow's state are serialized; mutations of different
workflows proceed in parallel::

    locks = KeyedLock()
    with locks("w1"):
        ...
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLock:
    """A lazily created ``threading.RLock`` per key.

    Locks are re-entrant so that a locked operation may call another
    operation on the same key.  Locks are never discarded; the key space is
    the set of workflow ids, which the services retain anyway.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.RLock] = {}

    def lock_for(self, key: Hashable) -> threading.RLock:
        """Return the lock guarding *key*, creating it on first use."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def __call__(self, key: Hashable) -> Iterator[None]:
        with self.lock_for(key):
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
