from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Sequence

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from copyedit.llm.provider import (
    LLMProviderError,
    LLMQuotaError,
    ProviderStatus,
)
from copyedit.llm.service import LLMService


class _ScriptedProvider:
    def __init__(self, name: str, *, result: Any = None, error: Exception | None = None) -> None:
        self.name = name
        self._result = result
        self._error = error
        self.calls: list[tuple[list[str], bool]] = []

    def generate(self, user_prompts: Sequence[str], *, filter_json: bool = False) -> Any:
        self.calls.append((list(user_prompts), filter_json))
        if self._error is not None:
            raise self._error
        return self._result

    def health_check(self) -> bool:
        return self._error is None


def test_requires_at_least_one_provider() -> None:
    with pytest.raises(ValueError):
        LLMService([])


def test_primary_name_and_order() -> None:
    service = LLMService([_ScriptedProvider("gemini"), _ScriptedProvider("mistral")])

    assert service.primary_name == "gemini"
    assert service.provider_order() == ["gemini", "mistral"]


def test_first_provider_result_is_returned() -> None:
    first = _ScriptedProvider("gemini", result={"ok": 1})
    second = _ScriptedProvider("mistral", result={"ok": 2})
    service = LLMService([first, second])

    assert service.generate(["prompt"], filter_json=True) == {"ok": 1}
    assert first.calls == [(["prompt"], True)]
    assert second.calls == []


def test_quota_error_falls_back_to_next_provider() -> None:
    reports: list[tuple[str, ProviderStatus]] = []
    first = _ScriptedProvider("gemini", error=LLMQuotaError("quota"))
    second = _ScriptedProvider("mistral", result="fallback")
    service = LLMService(
        [first, second], reporter=lambda name, status, error: reports.append((name, status))
    )

    assert service.generate(["prompt"]) == "fallback"
    assert reports == [
        ("gemini", ProviderStatus.QUOTA),
        ("mistral", ProviderStatus.SUCCESS),
    ]


def test_all_quota_exhausted_raises_quota_error() -> None:
    service = LLMService(
        [
            _ScriptedProvider("gemini", error=LLMQuotaError("a")),
            _ScriptedProvider("mistral", error=LLMQuotaError("b")),
        ]
    )

    with pytest.raises(LLMQuotaError, match="All providers exceeded quota"):
        service.generate(["prompt"])


def test_other_provider_errors_do_not_fall_back() -> None:
    reports: list[tuple[str, ProviderStatus, Exception | None]] = []
    second = _ScriptedProvider("mistral", result="never")
    service = LLMService(
        [_ScriptedProvider("gemini", error=LLMProviderError("boom")), second],
        reporter=lambda name, status, error: reports.append((name, status, error)),
    )

    with pytest.raises(LLMProviderError, match="boom"):
        service.generate(["prompt"])

    assert second.calls == []
    assert reports[0][:2] == ("gemini", ProviderStatus.FAILURE)


def test_health_check_reports_each_provider() -> None:
    service = LLMService(
        [
            _ScriptedProvider("gemini"),
            _ScriptedProvider("mistral", error=LLMProviderError("down")),
        ]
    )

    assert service.health_check() == [("gemini", True), ("mistral", False)]
