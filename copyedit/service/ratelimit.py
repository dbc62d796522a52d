"""Fixed-window rate limits for expensive (LLM-backed) calls.

Three buckets are consumed in order: a global per-minute bucket, a per-client
30-second bucket and a per-client calendar-day bucket whose day boundary is
computed in the configured timezone. The first exhausted bucket rejects the
call and reports how long until it resets.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from copyedit.config import RateLimitConfiguration

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global_min"
USER_30S_SCOPE = "user_30s"
USER_DAY_SCOPE = "user_day"

ANONYMOUS_CLIENT = "anonymous"


@dataclass(frozen=True)
class RateLimitResult:
    ok: bool
    scope: Optional[str] = None
    retry_after_seconds: Optional[int] = None


class CounterStore(Protocol):
    def increment(self, key: str, ttl_seconds: int, now: float) -> tuple[int, float]:
        """Increment ``key`` and return ``(count, expires_at)``."""
        ...


class MemoryCounterStore:
    """Best-effort per-process counters.

    Expired windows are swept at most once per ``sweep_interval`` seconds of
    the caller's clock.
    """

    def __init__(self, sweep_interval: float = 30.0) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = 0.0

    def increment(self, key: str, ttl_seconds: int, now: float) -> tuple[int, float]:
        with self._lock:
            if now >= self._next_sweep:
                self._purge_expired(now)
            count, expires_at = self._counters.get(key, (0, now + ttl_seconds))
            if now >= expires_at:
                count, expires_at = 0, now + ttl_seconds
            count += 1
            self._counters[key] = (count, expires_at)
            return count, expires_at

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._counters.items() if now >= expires_at]
        for key in expired:
            del self._counters[key]
        self._next_sweep = now + self._sweep_interval

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)


class RateLimiter:
    """Consume one unit from each bucket for a client."""

    def __init__(
        self,
        config: RateLimitConfiguration | None = None,
        *,
        store: CounterStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or RateLimitConfiguration()
        self._store = store or MemoryCounterStore()
        self._clock = clock
        self._tz = ZoneInfo(self._config.timezone)

    def consume(self, client_id: str | None) -> RateLimitResult:
        client = client_id or ANONYMOUS_CLIENT
        now = self._clock()
        whole = int(now)
        day_key, seconds_to_midnight = self._day_window(now)

        checks = (
            (GLOBAL_SCOPE, f"rl:gm:{whole // 60}", self._config.global_per_minute,
             60 - whole % 60),
            (USER_30S_SCOPE, f"rl:u30:{client}:{whole // 30}", self._config.user_per_30s,
             30 - whole % 30),
            (USER_DAY_SCOPE, f"rl:ud:{client}:{day_key}", self._config.user_per_day,
             seconds_to_midnight),
        )
        for scope, key, limit, window_seconds in checks:
            count, _ = self._store.increment(key, window_seconds, now)
            if count > limit:
                logger.info(
                    "Rate limit %s exceeded for client %s (%d/%d)", scope, client, count, limit
                )
                return RateLimitResult(
                    ok=False, scope=scope, retry_after_seconds=max(1, window_seconds)
                )
        return RateLimitResult(ok=True)

    def _day_window(self, now: float) -> tuple[str, int]:
        local_now = datetime.fromtimestamp(now, tz=self._tz)
        midnight = (local_now + timedelta(days=1)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        return local_now.date().isoformat(), int(midnight.timestamp() - now)
