from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, cast

import pytest
from mistralai import Mistral

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from copyedit.llm.mistral_llm import MistralLLM
from copyedit.llm.provider import (
    LLMParseError,
    LLMProviderConfigurationError,
    LLMQuotaError,
)


class _DummyMessage:
    def __init__(self, content: Any) -> None:
        self.content = content


class _DummyChoice:
    def __init__(self, message: _DummyMessage) -> None:
        self.message = message
        self.finish_reason = "stop"


class _DummyResponse:
    def __init__(self, content: Any) -> None:
        self.choices = [_DummyChoice(_DummyMessage(content))]


class _OutputsResponse:
    def __init__(self, content: Any) -> None:
        self.outputs = [{"type": "message.output", "content": content}]


class _DummyClient:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        class _Conversations:
            def __init__(self) -> None:
                self.calls: list[dict[str, object]] = []

            def start(self, **kwargs: object) -> Any:
                self.calls.append(kwargs)
                if error is not None:
                    raise error
                return response if response is not None else _DummyResponse("mock-response")

        class _Beta:
            def __init__(self) -> None:
                self.conversations = _Conversations()

        self.beta = _Beta()


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"{status_code} error")
        self.status_code = status_code


def test_generate_joins_prompts_and_sets_config(tmp_path: Path) -> None:
    system_prompt_path = tmp_path / "system.md"
    system_text = "## System\nFollow the rules."
    system_prompt_path.write_text(system_text, encoding="utf-8")
    client = _DummyClient()
    llm = MistralLLM(system_prompt=system_prompt_path, client=cast(Mistral, client))

    result = llm.generate(["Line one", "Line two"])

    assert isinstance(result, _DummyResponse)
    call = client.beta.conversations.calls[0]
    assert call["model"] == llm.model
    assert call["instructions"] == system_text
    first_input = call["inputs"][0]
    if isinstance(first_input, dict):
        assert first_input["role"] == "user"
        assert first_input["content"] == "Line one\nLine two"
    else:
        assert getattr(first_input, "role") == "user"
        assert getattr(first_input, "content") == "Line one\nLine two"
    assert call["completion_args"] == {"temperature": llm._temperature}


def test_mistral_api_key_is_passed_to_sdk_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MISTRAL_API_KEY", "env-test-key-123")
    captured: dict[str, object] = {}

    class FakeClient:
        def __init__(self, api_key: str | None = None, **kwargs: object) -> None:
            captured["api_key"] = api_key

    monkeypatch.setattr("copyedit.llm.mistral_llm.Mistral", FakeClient)

    MistralLLM(system_prompt="test")

    assert captured.get("api_key") == "env-test-key-123"


def test_mistral_raises_when_api_key_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
    monkeypatch.setattr("copyedit.llm.mistral_llm.load_dotenv", lambda *args, **kwargs: None)

    with pytest.raises(
        LLMProviderConfigurationError, match="MISTRAL_API_KEY environment variable is required"
    ):
        MistralLLM(system_prompt="test")


def test_temperature_read_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MISTRAL_TEMPERATURE", "0.0")
    client = _DummyClient()

    MistralLLM(system_prompt="test", client=cast(Mistral, client)).generate(["x"])

    assert client.beta.conversations.calls[0]["completion_args"] == {"temperature": 0.0}


def test_invalid_temperature_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MISTRAL_TEMPERATURE", "warm")

    llm = MistralLLM(system_prompt="test", client=cast(Mistral, _DummyClient()))

    assert llm._temperature == 0.2


def test_json_parsed_from_choices_shape() -> None:
    client = _DummyClient(response=_DummyResponse('```json\n{"revised_text": "a", "changes": []}\n```'))
    llm = MistralLLM(system_prompt="test", client=cast(Mistral, client), filter_json=True)

    assert llm.generate(["Prompt"]) == {"revised_text": "a", "changes": []}


def test_json_parsed_from_outputs_shape() -> None:
    client = _DummyClient(response=_OutputsResponse('{"revised_text": "b", "changes": []}'))
    llm = MistralLLM(system_prompt="test", client=cast(Mistral, client), filter_json=True)

    assert llm.generate(["Prompt"]) == {"revised_text": "b", "changes": []}


def test_generate_raises_when_response_has_no_content() -> None:
    client = _DummyClient(response=_DummyResponse(None))
    llm = MistralLLM(system_prompt="test", client=cast(Mistral, client), filter_json=True)

    with pytest.raises(LLMParseError) as exc_info:
        llm.generate(["Prompt"])

    assert exc_info.value.prompts == ["Prompt"]


def test_quota_errors_are_translated() -> None:
    client = _DummyClient(error=_StatusError(429))
    llm = MistralLLM(system_prompt="test", client=cast(Mistral, client))

    with pytest.raises(LLMQuotaError):
        llm.generate(["Prompt"])


def test_auth_errors_are_configuration_errors() -> None:
    client = _DummyClient(error=_StatusError(401))
    llm = MistralLLM(system_prompt="test", client=cast(Mistral, client))

    with pytest.raises(LLMProviderConfigurationError):
        llm.generate(["Prompt"])
