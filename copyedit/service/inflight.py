"""Coalesce concurrent identical requests onto one computation."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Generic, TypeVar

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """Map fingerprint -> pending future.

    The first caller for a key becomes its owner: it settles the future and
    then calls :meth:`release`. Later callers for the same key receive the
    owner's future and wait on it.
    """

    def __init__(self) -> None:
        self._pending: dict[str, Future[T]] = {}
        self._lock = threading.Lock()

    def get_or_register(self, key: str) -> tuple[Future[T], bool]:
        with self._lock:
            future = self._pending.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._pending[key] = future
            return future, True

    def release(self, key: str, future: Future[T]) -> bool:
        """Forget ``key`` if it still maps to ``future``; a newer owner is left alone."""
        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]
                return True
            return False

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
