"""Result cache keyed by request fingerprint."""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Protocol, TypeVar

T = TypeVar("T")


class ResultCache(Protocol[T]):
    """Minimal get/set store; swap in an external store behind the same shape."""

    def get(self, key: str) -> T | None: ...

    def set(self, key: str, value: T) -> None: ...


class MemoryCache(Generic[T]):
    """Thread-safe in-process cache with a fixed time-to-live per entry.

    Expired entries are dropped when read, and swept from the whole cache on
    ``set`` at most once per ``min(ttl_seconds, 60)`` seconds.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, T]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = min(ttl_seconds, 60.0)
        self._next_sweep = clock() + self._sweep_interval

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._purge_expired(now)
            self._entries[key] = (now + self._ttl, value)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
