from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from copyedit.config import CopyeditConfiguration, RateLimitConfiguration
from copyedit.errors import (
    InvalidInputError,
    LLMProviderError,
    PipelineTimeoutError,
    RateLimitedError,
    ServiceUnavailableError,
)
from copyedit.models import RewriteResult
from copyedit.rewrite.pipeline import CopyeditPipeline
from copyedit.service.inflight import InFlightRegistry
from copyedit.service.ratelimit import RateLimiter, RateLimitResult
from copyedit.service.rewrite_service import CacheStatus, RewriteService, fingerprint

GENEROUS = RateLimitConfiguration(global_per_minute=1000, user_per_30s=1000, user_per_day=1000)


class _StubRewriter:
    def __init__(self, fix: Callable[[str], RewriteResult] | None = None) -> None:
        self._fix = fix or (lambda text: RewriteResult(revised_text=text, changes=[]))
        self.calls: list[str] = []

    def rewrite(self, text: str) -> RewriteResult:
        self.calls.append(text)
        return self._fix(text)


class _BlockingRewriter(_StubRewriter):
    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def rewrite(self, text: str) -> RewriteResult:
        self.started.set()
        self.release.wait(timeout=10)
        return super().rewrite(text)


class _SignallingRegistry(InFlightRegistry):
    def __init__(self) -> None:
        super().__init__()
        self.joined = threading.Event()

    def get_or_register(self, key: str):
        future, owner = super().get_or_register(key)
        if not owner:
            self.joined.set()
        return future, owner


class _SpyLimiter:
    def __init__(self, result: RateLimitResult | None = None) -> None:
        self.result = result or RateLimitResult(ok=True)
        self.clients: list[str | None] = []

    def consume(self, client_id: str | None) -> RateLimitResult:
        self.clients.append(client_id)
        return self.result


def _service(
    rewriter: _StubRewriter,
    *,
    config: CopyeditConfiguration | None = None,
    **kwargs,
) -> RewriteService:
    config = config or CopyeditConfiguration(rate_limits=GENEROUS)
    return RewriteService(CopyeditPipeline(rewriter), config=config, **kwargs)


def test_repeat_request_is_served_from_cache() -> None:
    rewriter = _StubRewriter()
    with _service(rewriter) as service:
        first = service.rewrite("I saw teh cat.")
        second = service.rewrite("I saw teh cat.")

    assert first.cache_status is CacheStatus.MISS
    assert first.provider == "gemini"
    assert second.cache_status is CacheStatus.HIT
    assert second.provider == "cache"
    assert second.response == first.response
    assert len(rewriter.calls) == 1


def test_bypass_skips_lookup_but_refreshes_cache() -> None:
    rewriter = _StubRewriter()
    with _service(rewriter) as service:
        service.rewrite("Some text.")
        bypassed = service.rewrite("Some text.", bypass_cache=True)
        cached = service.rewrite("Some text.")

    assert bypassed.cache_status is CacheStatus.MISS
    assert cached.cache_status is CacheStatus.HIT
    assert len(rewriter.calls) == 2


def test_rules_only_skips_llm_and_cache() -> None:
    rewriter = _StubRewriter()
    with _service(rewriter) as service:
        rules = service.rewrite("I definately agree.", rules_only=True)
        full = service.rewrite("I definately agree.")

    assert rules.provider == "rules"
    assert rules.response.revised_text == "I definitely agree."
    assert full.cache_status is CacheStatus.MISS
    assert len(rewriter.calls) == 1


def test_concurrent_identical_requests_share_one_execution() -> None:
    rewriter = _BlockingRewriter()
    registry = _SignallingRegistry()
    results = {}

    with _service(rewriter, registry=registry) as service:

        def call(name: str) -> None:
            results[name] = service.rewrite("Shared text.", timeout=10)

        owner = threading.Thread(target=call, args=("owner",))
        owner.start()
        assert rewriter.started.wait(timeout=5)
        waiter = threading.Thread(target=call, args=("waiter",))
        waiter.start()
        assert registry.joined.wait(timeout=5)
        rewriter.release.set()
        owner.join(timeout=10)
        waiter.join(timeout=10)

    assert len(rewriter.calls) == 1
    assert not results["owner"].deduplicated
    assert results["waiter"].deduplicated
    assert results["waiter"].response is results["owner"].response
    assert len(registry) == 0


def test_waiter_recomputes_when_owner_is_rate_limited() -> None:
    rewriter = _StubRewriter()
    registry = _SignallingRegistry()
    limiter = _SpyLimiter()
    results = {}

    with _service(rewriter, registry=registry, rate_limiter=limiter) as service:
        # Another client's request for the same text is already in flight.
        key = fingerprint("Shared text.", "real", "gemini")
        alice_future, _ = registry.get_or_register(key)

        def call() -> None:
            results["bob"] = service.rewrite("Shared text.", client_id="bob", timeout=10)

        bob = threading.Thread(target=call)
        bob.start()
        assert registry.joined.wait(timeout=5)
        registry.release(key, alice_future)
        alice_future.set_exception(RateLimitedError("user_30s", 29))
        bob.join(timeout=10)

    assert results["bob"].response.revised_text == "Shared text."
    assert not results["bob"].deduplicated
    assert limiter.clients == ["bob"]
    assert rewriter.calls == ["Shared text."]


def test_timeout_surfaces_error_and_releases_key() -> None:
    rewriter = _BlockingRewriter()
    registry: InFlightRegistry = InFlightRegistry()
    service = _service(rewriter, registry=registry)
    try:
        with pytest.raises(PipelineTimeoutError):
            service.rewrite("Slow text.", timeout=0.1)
        assert len(registry) == 0
    finally:
        rewriter.release.set()
        service.close()


def test_upstream_failure_is_not_cached() -> None:
    attempts = []

    def flaky(text: str) -> RewriteResult:
        attempts.append(text)
        if len(attempts) == 1:
            raise LLMProviderError("temporarily down")
        return RewriteResult(revised_text=text, changes=[])

    with _service(_StubRewriter(flaky)) as service:
        with pytest.raises(LLMProviderError):
            service.rewrite("Retry me.")
        result = service.rewrite("Retry me.")

    assert result.cache_status is CacheStatus.MISS
    assert len(attempts) == 2


def test_rate_limited_client_is_rejected_before_pipeline() -> None:
    rewriter = _StubRewriter()
    config = CopyeditConfiguration(rate_limits=RateLimitConfiguration(user_per_30s=1))
    limiter = RateLimiter(config.rate_limits, clock=lambda: 1_700_000_000.0)
    with _service(rewriter, config=config, rate_limiter=limiter) as service:
        service.rewrite("First text.", client_id="alice")
        with pytest.raises(RateLimitedError) as exc_info:
            service.rewrite("Second text.", client_id="alice")

    assert exc_info.value.scope == "user_30s"
    assert exc_info.value.retry_after_seconds >= 1
    assert rewriter.calls == ["First text."]


def test_cache_hits_do_not_consume_quota() -> None:
    limiter = _SpyLimiter()
    with _service(_StubRewriter(), rate_limiter=limiter) as service:
        service.rewrite("Same text.", client_id="alice")
        service.rewrite("Same text.", client_id="alice")

    assert limiter.clients == ["alice"]


def test_mock_mode_is_not_rate_limited_by_default() -> None:
    limiter = _SpyLimiter(RateLimitResult(ok=False, scope="global_min", retry_after_seconds=5))
    config = CopyeditConfiguration(use_mock=True)
    with _service(_StubRewriter(), config=config, rate_limiter=limiter) as service:
        result = service.rewrite("Mock text.")

    assert result.provider == "mock"
    assert limiter.clients == []


def test_mock_mode_counts_when_configured() -> None:
    limiter = _SpyLimiter(RateLimitResult(ok=False, scope="global_min", retry_after_seconds=5))
    config = CopyeditConfiguration(use_mock=True, count_mock_as_expensive=True)
    with _service(_StubRewriter(), config=config, rate_limiter=limiter) as service:
        with pytest.raises(RateLimitedError):
            service.rewrite("Mock text.")


def test_maintenance_mode_rejects_llm_calls_only() -> None:
    rewriter = _StubRewriter()
    config = CopyeditConfiguration(maintenance_mode=True, rate_limits=GENEROUS)
    with _service(rewriter, config=config) as service:
        with pytest.raises(ServiceUnavailableError):
            service.rewrite("Any text.")
        rules = service.rewrite("Any text.", rules_only=True)

    assert rules.provider == "rules"
    assert rewriter.calls == []


def test_invalid_input_is_rejected_up_front() -> None:
    rewriter = _StubRewriter()
    with _service(rewriter) as service:
        with pytest.raises(InvalidInputError):
            service.rewrite("   ")


def test_fingerprint_normalises_text_and_separates_modes() -> None:
    base = fingerprint("Hello there.", "real", "gemini")

    assert fingerprint("  Hello there.\r\n", "real", "gemini") == base
    assert fingerprint("Hello there.", "mock", "gemini") != base
    assert fingerprint("Hello there.", "real", "mistral") != base
    assert fingerprint("Hello there.", "real", "gemini", prompt_version="v0") != base
    assert fingerprint("Hello there!", "real", "gemini") != base


def test_from_config_uses_offline_provider_in_mock_mode() -> None:
    config = CopyeditConfiguration(use_mock=True)
    with RewriteService.from_config(config) as service:
        result = service.rewrite("There is alot to do.")

    assert result.provider == "mock"
    assert result.response.revised_text == "There is a lot to do."
    assert result.response.changes[0].after == "a lot"
