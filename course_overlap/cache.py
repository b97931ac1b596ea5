from __future__ import annotations

"""
Explicit cache collaborators keyed by content hash.

Callers that want memoization across calls (for example, not re-decoding
the same stored embedding text on every request) create one of these
caches and inject it; nothing in the package keeps process-wide state.
Both caches expose ``get``/``set`` and are safe to share between the
worker threads of a corpus pass.
"""

import hashlib
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple


def content_hash(text: str) -> str:
    """Return a stable SHA-256 hex key for ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class LRUCache:
    """Size-bounded cache evicting the least recently used entry."""

    def __init__(self, maxsize: int = 1024) -> None:
        self.maxsize = max(1, maxsize)
        self._store: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            try:
                value = self._store[key]
            except KeyError:
                self.misses += 1
                return None
            self._store.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store[key] = value
            self._store.move_to_end(key)
            while len(self._store) > self.maxsize:
                self._store.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class TTLCache:
    """LRU cache whose entries also expire ``ttl`` seconds after being set."""

    def __init__(
        self,
        maxsize: int = 1024,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.maxsize = max(1, maxsize)
        self.ttl = ttl
        self._clock = clock
        self._store: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._store[key]
                self.misses += 1
                return None
            self._store.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store[key] = (self._clock() + self.ttl, value)
            self._store.move_to_end(key)
            self._purge_expired()
            while len(self._store) > self.maxsize:
                self._store.popitem(last=False)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (exp, _) in self._store.items() if now >= exp]
        for k in expired:
            del self._store[k]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
