"""Pydantic models for edits and pipeline results.

A :class:`Change` describes one atomic edit. Its ``loc`` is a half-open
character span into one specific text state; the pipeline keeps it current
as the text mutates and drops it when the span can no longer be recovered.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import ChangeType, Severity


class Span(BaseModel):
    """Half-open ``[start, end)`` character offsets."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "Span":
        if self.end < self.start:
            raise ValueError("span end must not precede start")
        return self

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "Span") -> bool:
        """True when the spans share a character, or a point span sits inside the other."""
        if self == other:
            return True
        return self.start < other.end and other.start < self.end

    def shifted(self, delta: int) -> "Span":
        return Span(start=self.start + delta, end=self.end + delta)


class Change(BaseModel):
    """Model for one edit reported by the rule engine, the LLM, or the diff fallback.

    Contract:
    - before/after: the local textual delta; ``before`` may be empty for a pure
      insertion and ``after`` may be empty for a pure deletion
    - context_before/context_after: short hints around the edit as seen by the
      producing stage; never trusted verbatim
    - loc: span in the currently tracked text, or None when unlocated
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str = ""
    type: ChangeType = ChangeType.OTHER
    severity: Severity = Severity.RECOMMENDED
    reason: str = ""
    before: str = ""
    after: str = ""
    context_before: str = ""
    context_after: str = ""
    loc: Optional[Span] = None

    @field_validator("type", mode="before")
    def _coerce_type(cls, value: object) -> ChangeType:  # type: ignore[override]
        return ChangeType.coerce(value)

    @field_validator("severity", mode="before")
    def _normalise_severity(cls, value: object) -> object:  # type: ignore[override]
        if isinstance(value, str):
            return value.strip().lower()
        return value

    # None from the model becomes an empty string; whitespace inside before/after
    # is significant and is left alone.
    @field_validator(
        "id",
        "reason",
        "before",
        "after",
        "context_before",
        "context_after",
        mode="before",
    )
    def _none_to_empty(cls, value: object) -> str:  # type: ignore[override]
        if value is None:
            return ""
        return str(value)

    @property
    def is_located(self) -> bool:
        return self.loc is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the service boundary; ``loc`` is omitted when absent."""
        data = self.model_dump(mode="json")
        if self.loc is None:
            data.pop("loc", None)
        return data


class RewriteResult(BaseModel):
    """Output of a single rewrite stage (rule engine or LLM adapter)."""

    model_config = ConfigDict(extra="forbid")

    revised_text: str
    changes: List[Change] = Field(default_factory=list)


class RewriteResponse(BaseModel):
    """Final pipeline output returned to callers."""

    model_config = ConfigDict(extra="forbid")

    revised_text: str
    changes: List[Change] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "revised_text": self.revised_text,
            "changes": [change.to_wire() for change in self.changes],
        }
