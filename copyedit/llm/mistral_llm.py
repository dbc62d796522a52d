from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Sequence, cast

from dotenv import load_dotenv
from mistralai import Mistral, models

# NOTE: We use the `inputs`/`instructions` shape via `beta.conversations.start`
# rather than the marshalled chat message classes.
from .json_utils import parse_json_response
from .provider import (
    LLMParseError,
    LLMProvider,
    LLMProviderConfigurationError,
    LLMProviderError,
    LLMQuotaError,
    load_system_prompt,
)


class MistralLLM(LLMProvider):
    """Wrapper around the Mistral SDK with system instructions.

    The system prompt can be provided either as a string directly or as a Path to a file.
    """

    name = "mistral"
    MODEL = "magistral-medium-latest"

    def __init__(
        self,
        system_prompt: str | Path,
        *,
        client: Mistral | None = None,
        dotenv_path: str | Path | None = None,
        filter_json: bool = False,
        model: str | None = None,
    ) -> None:
        self._system_prompt = load_system_prompt(system_prompt)

        if dotenv_path is not None:
            # Explicit environment values take precedence over the dotenv file.
            load_dotenv(dotenv_path=Path(dotenv_path))
        else:
            load_dotenv()

        # Mistral SDK does not automatically read MISTRAL_API_KEY from environment
        if client is None:
            api_key = os.environ.get("MISTRAL_API_KEY")
            if not api_key:
                raise LLMProviderConfigurationError(
                    "MISTRAL_API_KEY environment variable is required but not set. "
                    "Please set it in your .env file or environment."
                )
            self._client = Mistral(api_key=api_key)
        else:
            self._client = client

        self._filter_json = filter_json
        self._model = model or os.environ.get("MISTRAL_MODEL") or self.MODEL
        self._temperature = self._read_float_env("MISTRAL_TEMPERATURE", default=0.2)

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def model(self) -> str:
        return self._model

    def generate(
        self,
        user_prompts: Sequence[str],
        *,
        filter_json: bool | None = None,
    ) -> Any:
        if not user_prompts:
            raise ValueError("user_prompts must not be empty.")

        apply_filter = self._filter_json if filter_json is None else filter_json

        inputs = cast(
            models.ConversationInputs,
            [
                models.MessageInputEntry(
                    role="user",
                    content="\n".join(user_prompts),
                )
            ],
        )

        try:
            response = self._client.beta.conversations.start(
                inputs=inputs,
                instructions=self._system_prompt,
                model=self._model,
                completion_args={"temperature": self._temperature},
                tools=[],
            )
        except Exception as exc:
            # Translate SDK quota/auth failures into the project's error types so
            # the service can fall back to another provider or fail fast.
            status_code = getattr(exc, "status_code", None)
            if status_code == 429:
                raise LLMQuotaError(
                    "Mistral provider: quota exhausted or rate limited"
                ) from exc
            if status_code in (401, 403):
                raise LLMProviderConfigurationError(
                    f"Mistral provider rejected credentials: {exc}"
                ) from exc
            if isinstance(exc, models.SDKError):
                raise LLMProviderError(f"Mistral provider error: {exc}") from exc
            raise

        if not apply_filter:
            return response

        return self._parse_response_json(response, prompts=list(user_prompts))

    def health_check(self) -> bool:
        return True

    def _parse_response_json(
        self, response: Any, prompts: list[str] | None = None
    ) -> Any:
        """Extract and repair JSON content from a Mistral response.

        Raises:
            LLMParseError: If JSON parsing fails, with response text and prompts attached
        """
        # Two shapes are supported, in precedence order:
        # 1. response.outputs -> list of entries with a string `content`
        #    (the beta.conversations.start shape)
        # 2. response.choices[0].message.content -> older OpenAI-style shape
        text: str | None = None

        if hasattr(response, "outputs") and isinstance(
            getattr(response, "outputs"), list
        ):
            for entry in getattr(response, "outputs"):
                if isinstance(entry, dict):
                    content_val = entry.get("content")
                else:
                    content_val = getattr(entry, "content", None)

                if isinstance(content_val, str) and content_val.strip():
                    text = content_val
                    break

        if text is None and hasattr(response, "choices") and response.choices:
            message = getattr(response.choices[0], "message", None)
            if message is not None:
                maybe = getattr(message, "content", None)
                if isinstance(maybe, str):
                    text = maybe

        if not isinstance(text, str):
            raise LLMParseError(
                "Response message content is not a string for JSON parsing; expected `outputs` or `choices` shapes.",
                response_text=str(response),
                prompts=prompts,
            )

        try:
            return parse_json_response(text)
        except (ValueError, json.JSONDecodeError) as exc:
            raise LLMParseError(
                str(exc),
                response_text=text,
                prompts=prompts,
            ) from exc

    @staticmethod
    def _read_float_env(var_name: str, *, default: float) -> float:
        try:
            raw = os.environ.get(var_name)
            if raw is None:
                return default
            value = float(raw)
        except ValueError:
            return default
        return value
