from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 300.0


class TTLCache(Generic[V]):
    """Small expiring key/value cache with an injectable clock.

    Held by the application (``app.state``) and handed to whoever needs it,
    so tests can drive expiry with a fake clock. ``None`` values are never
    stored.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: V) -> None:
        if value is None:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def get_or_load(self, key: Hashable, loader: Callable[[], V | None]) -> V | None:
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
