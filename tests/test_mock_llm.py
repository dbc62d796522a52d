from __future__ import annotations

import json

import pytest

from copyedit.llm.mock_llm import MockLLM
from copyedit.llm.provider import LLMParseError
from copyedit.prompt.render_prompt import build_user_prompts


def test_mock_fixes_known_typos_with_context() -> None:
    llm = MockLLM(filter_json=True)

    payload = llm.generate(build_user_prompts("Wich one has alot of cats?"))

    assert payload["revised_text"] == "Which one has a lot of cats?"
    assert [(c["before"], c["after"]) for c in payload["changes"]] == [
        ("alot", "a lot"),
        ("Wich", "Which"),
    ]
    alot = payload["changes"][0]
    assert alot["context_before"] == "Wich one has "
    assert alot["context_after"] == " of cats?"


def test_mock_returns_json_text_without_filter() -> None:
    llm = MockLLM()

    raw = llm.generate(build_user_prompts("Nothing wrong here."))

    assert json.loads(raw) == {"revised_text": "Nothing wrong here.", "changes": []}


def test_mock_requires_text_block() -> None:
    with pytest.raises(LLMParseError):
        MockLLM().generate(["no block"])


def test_mock_rejects_empty_prompts() -> None:
    with pytest.raises(ValueError):
        MockLLM().generate([])
