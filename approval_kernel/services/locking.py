"""
KeyedLockRegistry -- one re-entrant lock per aggregate key.

Responsibility:
    Serializes every mutation of a single approval request (and its
    wallet hold) while letting mutations of different requests proceed
    in parallel.

Invariants enforced:
    - Two threads holding the same key never overlap.
    - Lock entries are reference counted and dropped once no thread
      holds or waits on them, so the registry does not grow with the
      number of requests ever decided.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyedLockRegistry:
    """Per-key locking for in-process serialization."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until ``key`` is free, hold it for the ``with`` body."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
