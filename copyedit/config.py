from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .llm.provider_registry import DEFAULT_PROVIDER, _split_names

TRUTHY = ("1", "true", "yes", "on")


def _read_bool_env(var_name: str, *, default: bool = False) -> bool:
    raw = os.environ.get(var_name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def _read_int_env(var_name: str, *, default: int) -> int:
    try:
        raw = os.environ.get(var_name)
        if raw is None:
            return default
        return int(raw)
    except ValueError:
        return default


def _read_float_env(var_name: str, *, default: float) -> float:
    try:
        raw = os.environ.get(var_name)
        if raw is None:
            return default
        return float(raw)
    except ValueError:
        return default


@dataclass
class RateLimitConfiguration:
    """Fixed-window limits applied before an expensive pipeline run."""

    global_per_minute: int = 9
    user_per_30s: int = 1
    user_per_day: int = 20
    timezone: str = "America/Los_Angeles"


@dataclass
class CopyeditConfiguration:
    """Settings shared by the pipeline, the rewrite service and the CLI."""

    # Pipeline
    max_passes: int = 3
    max_text_length: int = 4000

    # LLM settings
    use_mock: bool = False
    llm_provider: str = DEFAULT_PROVIDER
    llm_fallbacks: list[str] = field(default_factory=list)

    # Service
    cache_ttl_seconds: float = 24 * 60 * 60
    timeout_seconds: float = 60.0
    maintenance_mode: bool = False
    count_mock_as_expensive: bool = False
    rate_limits: RateLimitConfiguration = field(default_factory=RateLimitConfiguration)

    @property
    def mode(self) -> str:
        return "mock" if self.use_mock else "real"

    @property
    def provider_name(self) -> str:
        return "mock" if self.use_mock else self.llm_provider

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "CopyeditConfiguration":
        """Build a configuration from the environment (and ``.env`` if present)."""
        if dotenv_path is not None:
            load_dotenv(dotenv_path=Path(dotenv_path))
        else:
            load_dotenv()

        primary = _split_names(os.environ.get("LLM_PRIMARY"))
        return cls(
            max_passes=max(1, _read_int_env("COPYEDIT_MAX_PASSES", default=3)),
            max_text_length=_read_int_env("COPYEDIT_MAX_TEXT_LENGTH", default=4000),
            use_mock=_read_bool_env("USE_MOCK"),
            llm_provider=primary[0] if primary else DEFAULT_PROVIDER,
            llm_fallbacks=primary[1:] + _split_names(os.environ.get("LLM_FALLBACK")),
            cache_ttl_seconds=_read_float_env(
                "COPYEDIT_CACHE_TTL_SECONDS", default=24 * 60 * 60
            ),
            timeout_seconds=_read_float_env("COPYEDIT_TIMEOUT_SECONDS", default=60.0),
            maintenance_mode=_read_bool_env("MAINTENANCE_MODE"),
            count_mock_as_expensive=_read_bool_env("COUNT_MOCK_AS_EXPENSIVE"),
            rate_limits=RateLimitConfiguration(
                global_per_minute=_read_int_env("RATE_GLOBAL_RPM", default=9),
                user_per_30s=_read_int_env("RATE_USER_30S", default=1),
                user_per_day=_read_int_env("RATE_USER_RPD", default=20),
                timezone=os.environ.get("RATE_TZ", "America/Los_Angeles"),
            ),
        )
