"""Service layer: caching, in-flight dedupe, rate limiting and timeouts."""

from __future__ import annotations

from .cache import MemoryCache, ResultCache
from .inflight import InFlightRegistry
from .ratelimit import MemoryCounterStore, RateLimiter, RateLimitResult
from .rewrite_service import CacheStatus, RewriteService, ServiceResult, fingerprint

__all__ = [
    "CacheStatus",
    "InFlightRegistry",
    "MemoryCache",
    "MemoryCounterStore",
    "RateLimitResult",
    "RateLimiter",
    "ResultCache",
    "RewriteService",
    "ServiceResult",
    "fingerprint",
]
