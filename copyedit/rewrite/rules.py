"""Deterministic regex rewrites applied before the LLM pass.

Every rule finds all non-overlapping matches in the current working text and
applies them in reverse index order, so offsets of earlier matches in the
same rule stay valid. Changes recorded by earlier rules are shifted by the
length delta of each later replacement, which keeps every ``loc`` relative to
the post-engine text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from copyedit.models import Change, ChangeType, RewriteResult, Severity, Span

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 20

Replacement = Callable[["re.Match[str]"], str]


@dataclass(frozen=True)
class Rule:
    """A single regex rewrite."""

    name: str
    pattern: "re.Pattern[str]"
    replacement: Replacement
    type: ChangeType
    reason: str


COMMON_TYPOS: tuple[tuple[str, str], ...] = (
    ("definately", "definitely"),
    ("seperately", "separately"),
    ("occured", "occurred"),
    ("recieve", "receive"),
    ("teh", "the"),
)


def _constant(value: str) -> Replacement:
    return lambda _match: value


def _preserve_case(fix: str) -> Replacement:
    def replace(match: "re.Match[str]") -> str:
        original = match.group(0)
        if original[:1].isupper():
            return fix[:1].upper() + fix[1:]
        return fix

    return replace


def default_rules() -> list[Rule]:
    """Rules in their fixed priority order."""
    rules = [
        Rule(
            name="punctuation:em-dash",
            pattern=re.compile(r"\s?--\s?"),
            replacement=_constant("—"),
            type=ChangeType.PUNCTUATION,
            reason="Chicago style uses em dashes (—) without surrounding spaces.",
        )
    ]
    for typo, fix in COMMON_TYPOS:
        rules.append(
            Rule(
                name=f"spelling:{typo}",
                pattern=re.compile(rf"\b{typo}\b", re.IGNORECASE),
                replacement=_preserve_case(fix),
                type=ChangeType.SPELLING,
                reason=f"Corrected spelling: '{typo}' should be '{fix}'.",
            )
        )
    rules.extend(
        [
            Rule(
                name="punctuation:open-quote",
                pattern=re.compile(r'(?<!\w)"(?=\w)'),
                replacement=_constant("“"),
                type=ChangeType.PUNCTUATION,
                reason="Use a curly opening quotation mark.",
            ),
            Rule(
                name="punctuation:close-quote",
                pattern=re.compile(r'(?<=\w)"'),
                replacement=_constant("”"),
                type=ChangeType.PUNCTUATION,
                reason="Use a curly closing quotation mark.",
            ),
            Rule(
                name="spacing:multiple-spaces",
                pattern=re.compile(r" {2,}"),
                replacement=_constant(" "),
                type=ChangeType.SPACING,
                reason="Use single spaces between words and sentences.",
            ),
        ]
    )
    return rules


class RuleEngine:
    """Apply an ordered list of :class:`Rule` objects to a text."""

    def __init__(self, rules: Sequence[Rule] | None = None) -> None:
        self._rules = list(rules) if rules is not None else default_rules()

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def apply(self, text: str) -> RewriteResult:
        revised = text
        changes: list[Change] = []

        for rule in self._rules:
            matches = []
            for match in rule.pattern.finditer(revised):
                after = rule.replacement(match)
                if after != match.group(0):
                    matches.append((match.start(), match.end(), match.group(0), after))
            if not matches:
                continue

            logger.debug("Rule %s: %d replacement(s)", rule.name, len(matches))

            for start, end, before, after in reversed(matches):
                context_before = revised[max(0, start - CONTEXT_CHARS) : start]
                context_after = revised[end : end + CONTEXT_CHARS]
                revised = revised[:start] + after + revised[end:]

                delta = len(after) - len(before)
                if delta:
                    _shift_recorded(changes, start, end, delta)

                changes.append(
                    Change(
                        id=f"r{len(changes) + 1}",
                        type=rule.type,
                        severity=Severity.RECOMMENDED,
                        reason=rule.reason,
                        before=before,
                        after=after,
                        context_before=context_before,
                        context_after=context_after,
                        loc=Span(start=start, end=start + len(after)),
                    )
                )

        return RewriteResult(revised_text=revised, changes=changes)


def _shift_recorded(changes: list[Change], start: int, end: int, delta: int) -> None:
    """Move recorded spans that sit at or after a replaced ``[start, end)`` range."""
    for change in changes:
        loc = change.loc
        if loc is None:
            continue
        if loc.start >= end:
            change.loc = loc.shifted(delta)
        elif loc.end > start:
            # Overlaps the replaced range: keep the start, adjust the end.
            change.loc = Span(start=loc.start, end=max(loc.start, loc.end + delta))
