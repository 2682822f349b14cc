"""Per-scope exclusive locks for selection writes."""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager


class ScopeLocks:
    """Thread-safe registry of re-entrant locks keyed by (customer, vendor).

    All writes to one customer/vendor scope run under that scope's lock, so
    version assignment and the single-working-selection rule are decided by
    one writer at a time. Different scopes never block each other here.

    Entries are weak: a scope's lock lives only while some caller holds or
    waits on it, so the registry does not grow with every scope ever seen.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[str, str], threading.RLock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, customer_id: str, vendor_id: str) -> threading.RLock:
        key = (customer_id, vendor_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, customer_id: str, vendor_id: str) -> Iterator[None]:
        """Block until the scope's lock is acquired."""
        with self.get(customer_id, vendor_id):
            yield


# Shared by every repository in the process unless one is injected
DEFAULT_LOCKS = ScopeLocks()
