"""Request-level facade over the copyedit pipeline.

The service owns everything that is shared across requests: the result
cache, the table of in-flight computations and the rate limiter. Identical
concurrent requests (same fingerprint) share one pipeline execution, and
every caller waits at most its own timeout for the result.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from copyedit.config import CopyeditConfiguration
from copyedit.errors import PipelineTimeoutError, RateLimitedError, ServiceUnavailableError
from copyedit.models import RewriteResponse
from copyedit.prompt.render_prompt import PROMPT_VERSION
from copyedit.rewrite.pipeline import CopyeditPipeline
from copyedit.rewrite.rewriter import LLMRewriter

from .cache import MemoryCache, ResultCache
from .inflight import InFlightRegistry
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

RULES_PROVIDER = "rules"
CACHE_PROVIDER = "cache"


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"


@dataclass(frozen=True)
class ServiceResult:
    response: RewriteResponse
    cache_status: CacheStatus
    provider: str
    deduplicated: bool = False


def fingerprint(
    text: str, mode: str, provider: str, *, prompt_version: str = PROMPT_VERSION
) -> str:
    """Cache and dedupe key for a request."""
    normalized = text.replace("\r\n", "\n").strip()
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"rewrite:{prompt_version}:{mode}:{provider}:{digest}"


class RewriteService:
    """Cache, dedupe, admit and time-bound pipeline executions."""

    def __init__(
        self,
        pipeline: CopyeditPipeline,
        *,
        config: CopyeditConfiguration | None = None,
        cache: ResultCache[RewriteResponse] | None = None,
        registry: InFlightRegistry[RewriteResponse] | None = None,
        rate_limiter: RateLimiter | None = None,
        max_workers: int = 4,
    ) -> None:
        self._pipeline = pipeline
        self._config = config or CopyeditConfiguration()
        self._cache = cache if cache is not None else MemoryCache(self._config.cache_ttl_seconds)
        self._registry = registry if registry is not None else InFlightRegistry()
        self._rate_limiter = rate_limiter or RateLimiter(self._config.rate_limits)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="copyedit"
        )
        # Guards the "cache lookup, else register in-flight" step only.
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: CopyeditConfiguration,
        *,
        dotenv_path: str | Path | None = None,
    ) -> "RewriteService":
        if config.use_mock:
            rewriter = LLMRewriter.offline()
        else:
            rewriter = LLMRewriter.from_providers(
                primary=config.llm_provider,
                fallbacks=config.llm_fallbacks,
                dotenv_path=dotenv_path,
                lazy=True,
            )
        pipeline = CopyeditPipeline(
            rewriter,
            max_passes=config.max_passes,
            max_text_length=config.max_text_length,
        )
        return cls(pipeline, config=config)

    @property
    def config(self) -> CopyeditConfiguration:
        return self._config

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "RewriteService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def rewrite(
        self,
        text: str,
        *,
        client_id: str | None = None,
        timeout: float | None = None,
        bypass_cache: bool = False,
        rules_only: bool = False,
    ) -> ServiceResult:
        """Copyedit ``text`` for ``client_id``.

        Raises:
            InvalidInputError: Empty or oversized text.
            ServiceUnavailableError: Maintenance mode is on.
            RateLimitedError: The client or the service exhausted a bucket.
            PipelineTimeoutError: No result within ``timeout`` seconds.
            LLMProviderError: The LLM call failed (including parse and
                configuration failures).
        """
        if rules_only:
            response = self._pipeline.process_rules_only(text)
            return ServiceResult(response, CacheStatus.MISS, RULES_PROVIDER)

        self._pipeline.validate_input(text)
        key = fingerprint(text, self._config.mode, self._config.provider_name)
        wait = self._config.timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + wait

        while True:
            with self._lock:
                cached = None if bypass_cache else self._cache.get(key)
                if cached is None:
                    future, is_owner = self._registry.get_or_register(key)
            if cached is not None:
                logger.info("Cache hit for %s", key)
                return ServiceResult(cached, CacheStatus.HIT, CACHE_PROVIDER)
            if is_owner:
                break

            logger.info("Joining in-flight request for %s", key)
            try:
                response = self._wait(future, deadline)
            except (ServiceUnavailableError, RateLimitedError) as exc:
                # Admission is per caller; the owner's rejection is not ours.
                logger.info("In-flight owner for %s was turned away (%s); retrying", key, exc)
                continue
            return ServiceResult(
                response, CacheStatus.MISS, self._config.provider_name, deduplicated=True
            )

        try:
            self._admit(client_id)
        except (ServiceUnavailableError, RateLimitedError) as exc:
            self._settle(key, future, error=exc)
            raise

        self._executor.submit(self._compute, key, future, text, deadline)
        try:
            response = self._wait(future, deadline)
        except PipelineTimeoutError as exc:
            # Release the key now so waiters stop and later requests start fresh.
            self._settle(key, future, error=exc)
            raise
        return ServiceResult(response, CacheStatus.MISS, self._config.provider_name)

    def _admit(self, client_id: str | None) -> None:
        if self._config.maintenance_mode:
            raise ServiceUnavailableError("Service is in maintenance mode")
        expensive = self._config.mode == "real" or self._config.count_mock_as_expensive
        if not expensive:
            return
        result = self._rate_limiter.consume(client_id)
        if not result.ok:
            logger.warning(
                "Rejected request from %s: %s limit, retry after %ss",
                client_id or "anonymous",
                result.scope,
                result.retry_after_seconds,
            )
            raise RateLimitedError(result.scope or "unknown", result.retry_after_seconds or 1)

    def _compute(
        self, key: str, future: Future[RewriteResponse], text: str, deadline: float
    ) -> None:
        started = time.monotonic()
        try:
            response = self._pipeline.process(text, deadline=deadline)
        except Exception as exc:
            self._settle(key, future, error=exc)
            return
        logger.info("Pipeline finished in %.2fs for %s", time.monotonic() - started, key)
        with self._lock:
            self._cache.set(key, response)
        self._settle(key, future, result=response)

    def _settle(
        self,
        key: str,
        future: Future[RewriteResponse],
        *,
        result: RewriteResponse | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._registry.release(key, future)
        try:
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)
        except InvalidStateError:
            # Already settled by a timed-out owner; the late outcome is dropped.
            logger.debug("In-flight request %s was already settled", key)

    def _wait(self, future: Future[RewriteResponse], deadline: float) -> RewriteResponse:
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError as exc:
            logger.warning("Request deadline passed before a result was ready")
            raise PipelineTimeoutError("No result before the request deadline") from exc
