from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Sequence

from .provider import LLMParseError, load_system_prompt

# Typos the offline provider knows how to fix, applied as whole words.
MOCK_REPLACEMENTS: tuple[tuple[str, str, str], ...] = (
    ("teh", "the", "Corrected spelling: 'teh' should be 'the'."),
    ("alot", "a lot", "Corrected spelling: 'alot' should be 'a lot'."),
    ("wich", "which", "Corrected spelling: 'wich' should be 'which'."),
)

_TEXT_BLOCK = re.compile(r"<text>\n?(.*?)\n?</text>", re.DOTALL)


class MockLLM:
    """Deterministic offline provider used for demos and tests.

    It reads the paragraph out of the ``<text>`` block of the user prompt and
    fixes a short list of typos, reporting each fix with surrounding context the
    way a real model would (no offsets).
    """

    name = "mock"
    MODEL = "mock-v1"

    def __init__(
        self,
        system_prompt: str | Path = "",
        *,
        filter_json: bool = False,
        replacements: Sequence[tuple[str, str, str]] = MOCK_REPLACEMENTS,
    ) -> None:
        self._system_prompt = load_system_prompt(system_prompt)
        self._filter_json = filter_json
        self._replacements = list(replacements)

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def model(self) -> str:
        return self.MODEL

    def generate(
        self,
        user_prompts: Sequence[str],
        *,
        filter_json: bool | None = None,
    ) -> Any:
        if not user_prompts:
            raise ValueError("user_prompts must not be empty.")

        apply_filter = self._filter_json if filter_json is None else filter_json
        prompt = "\n".join(user_prompts)
        match = _TEXT_BLOCK.search(prompt)
        if match is None:
            raise LLMParseError(
                "Mock provider could not find a <text> block in the prompt.",
                prompts=list(user_prompts),
            )

        payload = self._rewrite(match.group(1))
        if apply_filter:
            return payload
        return json.dumps(payload)

    def health_check(self) -> bool:
        return True

    def _rewrite(self, text: str) -> dict[str, Any]:
        revised = text
        changes: list[dict[str, str]] = []
        for typo, fix, reason in self._replacements:
            pattern = re.compile(rf"\b{re.escape(typo)}\b", re.IGNORECASE)
            while True:
                found = pattern.search(revised)
                if found is None:
                    break
                original = found.group(0)
                after = fix[0].upper() + fix[1:] if original[0].isupper() else fix
                start, end = found.span()
                changes.append(
                    {
                        "type": "spelling",
                        "severity": "required",
                        "reason": reason,
                        "before": original,
                        "after": after,
                        "context_before": revised[max(0, start - 30) : start],
                        "context_after": revised[end : end + 30],
                    }
                )
                revised = revised[:start] + after + revised[end:]
        return {"revised_text": revised, "changes": changes}
