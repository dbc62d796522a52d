"""Recover the exact span of an LLM-reported change in the revised text.

The model reports each edit as ``before``/``after`` fragments plus roughly 30
characters of context on either side, but no offsets. Short fragments such as
a single corrected word often occur several times in a paragraph, so every
occurrence of ``after`` is scored against the reported context and the best
one wins. Context is compared after reducing both sides to lower-case
alphanumerics because the model's context is approximate, not literal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

from copyedit.models import Change, Span

WINDOW_CHARS = 40
MAX_CONTEXT_SCORE_CHARS = 30
NEUTRAL_CONTEXT_SCORE = 0.5

EXACT_BONUS = 1.0
CASE_INSENSITIVE_BONUS = 0.75
NORMALIZED_BONUS = 0.5

_NON_ALNUM = re.compile(r"[\W_]+")
_WORD = re.compile(r"\w+")


@dataclass(frozen=True)
class Candidate:
    start: int
    end: int
    score: float


def normalize_context(value: str) -> str:
    """Strip everything except alphanumerics and lower-case the rest."""
    return _NON_ALNUM.sub("", value).lower()


def _common_suffix_length(a: str, b: str) -> int:
    length = 0
    for x, y in zip(reversed(a), reversed(b)):
        if x != y:
            break
        length += 1
    return length


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for x, y in zip(a, b):
        if x != y:
            break
        length += 1
    return length


def context_score(window: str, context: str, *, suffix: bool) -> float:
    """Similarity in ``[0, 1]`` between a text window and a reported context.

    ``suffix=True`` compares the ends (text before a candidate); otherwise the
    beginnings (text after it). The matched length is capped at 30 characters
    and divided by the usable context length. A context with no alphanumerics
    scores a neutral 0.5 so edits at the text boundaries are not penalised.
    """
    norm_context = normalize_context(context)
    if not norm_context:
        return NEUTRAL_CONTEXT_SCORE
    norm_window = normalize_context(window)
    if suffix:
        matched = _common_suffix_length(norm_window, norm_context)
    else:
        matched = _common_prefix_length(norm_window, norm_context)
    usable = min(len(norm_context), MAX_CONTEXT_SCORE_CHARS)
    return min(matched, MAX_CONTEXT_SCORE_CHARS) / usable


def _score(text: str, start: int, end: int, change: Change, bonus: float) -> Candidate:
    window_before = text[max(0, start - WINDOW_CHARS) : start]
    window_after = text[end : end + WINDOW_CHARS]
    score = (
        context_score(window_before, change.context_before, suffix=True)
        + context_score(window_after, change.context_after, suffix=False)
        + bonus
    )
    return Candidate(start=start, end=end, score=score)


def _literal_occurrences(text: str, needle: str) -> Iterator[tuple[int, int]]:
    index = text.find(needle)
    while index != -1:
        yield index, index + len(needle)
        index = text.find(needle, index + 1)


def _case_insensitive_occurrences(text: str, needle: str) -> Iterator[tuple[int, int]]:
    for match in re.finditer(re.escape(needle), text, re.IGNORECASE):
        yield match.span()


def _normalized_occurrences(text: str, needle: str) -> Iterator[tuple[int, int]]:
    # Punctuation-stripped, whitespace-collapsed: the words of the needle in
    # order with any run of non-word characters between them.
    words = _WORD.findall(needle)
    if not words:
        return
    pattern = r"[\W_]*".join(re.escape(word) for word in words)
    for match in re.finditer(pattern, text, re.IGNORECASE):
        yield match.span()


def _best(candidates: list[Candidate]) -> Candidate | None:
    best: Candidate | None = None
    for candidate in candidates:
        if best is None or candidate.score > best.score or (
            candidate.score == best.score and candidate.start < best.start
        ):
            best = candidate
    return best


def _whitespace_tolerant(fragment: str) -> str:
    return r"\s+".join(re.escape(piece) for piece in fragment.split())


def _locate_gap(text: str, change: Change) -> Span | None:
    """Zero-width span between the tail of context_before and head of context_after."""
    tail = change.context_before[-MAX_CONTEXT_SCORE_CHARS:]
    head = change.context_after[:MAX_CONTEXT_SCORE_CHARS]
    if not tail.strip() and not head.strip():
        return None

    index = text.find(tail + head)
    if index != -1:
        gap = index + len(tail)
        return Span(start=gap, end=gap)

    # Whitespace-tolerant, case-insensitive retry; the gap may swallow or gain
    # whitespace where the deleted fragment used to be.
    pattern = rf"{_whitespace_tolerant(tail)}(\s*){_whitespace_tolerant(head)}"
    match = re.search(pattern, text, re.IGNORECASE)
    if match is None:
        return None
    gap = match.start(1)
    return Span(start=gap, end=gap)


def is_end_insertion(previous_text: str, text: str, change: Change) -> bool:
    """True when ``text`` only appends to ``previous_text`` and ``change`` is that suffix."""
    if len(text) <= len(previous_text) or not text.startswith(previous_text):
        return False
    if change.context_after.strip():
        return False
    suffix = text[len(previous_text) :]
    return bool(change.after) and (
        change.after == suffix or change.after.strip() == suffix.strip()
    )


def locate(
    text: str,
    change: Change,
    *,
    previous_text: str | None = None,
) -> Span | None:
    """Find the most likely ``[start, end)`` of ``change.after`` in ``text``.

    ``previous_text`` is the text the change was applied to. When ``text``
    only appends to it and the change reports that suffix, the span is the
    appended suffix itself. Returns None when no strategy finds a candidate.
    """
    if previous_text is not None and is_end_insertion(previous_text, text, change):
        return Span(start=len(previous_text), end=len(text))

    search_text = change.after.strip()
    if not search_text:
        return _locate_gap(text, change)

    candidates = [
        _score(text, start, end, change, EXACT_BONUS)
        for start, end in _literal_occurrences(text, search_text)
    ]

    if not candidates:
        seen: dict[tuple[int, int], Candidate] = {}
        for occurrences, bonus in (
            (_case_insensitive_occurrences(text, search_text), CASE_INSENSITIVE_BONUS),
            (_normalized_occurrences(text, search_text), NORMALIZED_BONUS),
        ):
            for start, end in occurrences:
                candidate = _score(text, start, end, change, bonus)
                current = seen.get((start, end))
                if current is None or candidate.score > current.score:
                    seen[(start, end)] = candidate
        candidates = list(seen.values())

    best = _best(candidates)
    if best is None:
        return None
    return Span(start=best.start, end=best.end)
