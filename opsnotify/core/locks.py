"""Striped locks — per-key serialisation without one global lock."""

from __future__ import annotations

import threading
from collections.abc import Hashable


class StripedLock:
    """Fixed pool of locks selected by key hash.

    Operations on the same key always take the same lock; operations on
    different keys usually take different ones.
    """

    def __init__(self, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._locks = [threading.Lock() for _ in range(stripes)]

    def __len__(self) -> int:
        return len(self._locks)

    def for_key(self, key: Hashable) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]
