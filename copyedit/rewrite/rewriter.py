"""LLM rewrite pass: prompt, call, validate.

The adapter sends a paragraph to the configured provider chain with the
copyediting instructions and returns the model's revised text plus its
reported changes. Reported changes carry no trustworthy offsets; the
pipeline locates them afterwards.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from copyedit.llm.mock_llm import MockLLM
from copyedit.llm.provider import (
    LLMParseError,
    LLMProviderConfigurationError,
    LLMProviderError,
    ProviderStatus,
)
from copyedit.llm.provider_registry import create_provider_chain
from copyedit.llm.service import LLMService
from copyedit.models import Change, RewriteResult
from copyedit.prompt.render_prompt import build_user_prompts, get_system_prompt_text

logger = logging.getLogger(__name__)


class LlmRewritePayload(BaseModel):
    """Shape of the JSON object the prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore")

    revised_text: str
    changes: List[Change] = Field(default_factory=list)


def log_provider_status(
    provider_name: str, status: ProviderStatus, error: Exception | None
) -> None:
    if status is ProviderStatus.SUCCESS:
        logger.debug("Provider %s succeeded", provider_name)
    else:
        logger.warning("Provider %s reported %s: %s", provider_name, status.value, error)


class LLMRewriter:
    """Run the LLM copyedit pass over a text.

    The provider chain may be given directly or as a ``connect`` callable
    that builds it on the first rewrite.
    """

    def __init__(
        self,
        service: LLMService | None = None,
        *,
        connect: Callable[[], LLMService] | None = None,
    ) -> None:
        if service is None and connect is None:
            raise ValueError("LLMRewriter needs a service or a connect callable.")
        self._service = service
        self._connect = connect
        self._connect_lock = threading.Lock()

    @classmethod
    def from_providers(
        cls,
        *,
        primary: str | None = None,
        fallbacks: list[str] | None = None,
        dotenv_path: str | Path | None = None,
        lazy: bool = False,
    ) -> "LLMRewriter":
        def connect() -> LLMService:
            try:
                providers = create_provider_chain(
                    system_prompt=get_system_prompt_text(),
                    filter_json=True,
                    dotenv_path=dotenv_path,
                    primary=primary,
                    fallbacks=fallbacks,
                )
            except ValueError as exc:
                raise LLMProviderConfigurationError(str(exc)) from exc
            return LLMService(providers, reporter=log_provider_status)

        if lazy:
            return cls(connect=connect)
        return cls(connect())

    @classmethod
    def offline(cls) -> "LLMRewriter":
        """Rewriter backed only by the deterministic mock provider."""
        provider = MockLLM(system_prompt=get_system_prompt_text(), filter_json=True)
        return cls(LLMService([provider], reporter=log_provider_status))

    @property
    def connected(self) -> bool:
        return self._service is not None

    @property
    def provider_name(self) -> str:
        return self._get_service().primary_name

    def _get_service(self) -> LLMService:
        with self._connect_lock:
            if self._service is None:
                assert self._connect is not None
                self._service = self._connect()
            return self._service

    def rewrite(self, text: str) -> RewriteResult:
        service = self._get_service()
        prompts = build_user_prompts(text)
        try:
            payload = service.generate(prompts, filter_json=True)
        except LLMProviderError:
            raise
        except Exception as exc:
            raise LLMProviderError(f"LLM request failed: {exc}") from exc

        result = parse_rewrite_payload(payload, prompts=prompts)
        logger.debug(
            "LLM pass returned %d change(s); text %s",
            len(result.changes),
            "unchanged" if result.revised_text == text else "changed",
        )
        return result


def parse_rewrite_payload(payload: Any, *, prompts: list[str] | None = None) -> RewriteResult:
    """Validate a parsed model response and drop no-op changes.

    Raises:
        LLMParseError: If the payload is not an object of the expected shape.
    """
    if not isinstance(payload, dict):
        raise LLMParseError(
            f"Expected a JSON object from the model, got {type(payload).__name__}",
            response_text=repr(payload),
            prompts=prompts,
        )
    raw_changes = payload.get("changes")
    if raw_changes is None:
        payload = {**payload, "changes": []}
    elif isinstance(raw_changes, list):
        # Offsets are never taken from the model.
        payload = {
            **payload,
            "changes": [
                {k: v for k, v in item.items() if k != "loc"}
                if isinstance(item, dict)
                else item
                for item in raw_changes
            ],
        }
    try:
        parsed = LlmRewritePayload.model_validate(payload)
    except ValidationError as exc:
        raise LLMParseError(
            f"Model response does not match the rewrite schema: {exc}",
            response_text=repr(payload),
            prompts=prompts,
        ) from exc

    changes: list[Change] = []
    for change in parsed.changes:
        if change.before == change.after:
            continue
        changes.append(
            change.model_copy(update={"id": f"g{len(changes) + 1}"})
        )
    return RewriteResult(revised_text=parsed.revised_text, changes=changes)
