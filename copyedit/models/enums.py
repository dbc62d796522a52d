"""Enumerations used by the change models.

The values are the wire strings the prompt asks the model to emit, so they
double as serialised JSON fields.
"""

from __future__ import annotations

from enum import Enum


class ChangeType(str, Enum):
    """Category of a single atomic edit."""

    SPELLING = "spelling"
    GRAMMAR = "grammar"
    PUNCTUATION = "punctuation"
    CAPITALIZATION = "capitalization"
    HYPHENATION = "hyphenation"
    NUMBERS = "numbers"
    CONSISTENCY = "consistency"
    CITATION_FORMAT = "citation-format"
    SPACING = "spacing"
    INSERT_AT_END = "insert-at-end"
    OTHER = "other"

    @classmethod
    def all_values(cls) -> list[str]:
        return [m.value for m in cls]

    @classmethod
    def coerce(cls, value: object) -> "ChangeType":
        """Map loose model output (``citation_format``, ``Style``) onto a member.

        Unknown tags fall back to :attr:`OTHER`.
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


class Severity(str, Enum):
    """How strongly a change is recommended."""

    REQUIRED = "required"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"
    UNCERTAIN = "uncertain"

    @classmethod
    def all_values(cls) -> list[str]:
        return [m.value for m in cls]
