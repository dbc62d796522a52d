"""Catch edits the model made to the text but did not report.

Only inserted runs are synthesised into changes: a pure deletion has no
anchor in the final text for the UI to highlight.
"""

from __future__ import annotations

import logging
from typing import Iterable

from copyedit.models import Change, ChangeType, Severity, Span

from .diffing import DIFF_DELETE, DIFF_INSERT, compute_semantic_diff

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 30
AUTO_DETECTED_REASON = "auto-detected change"


def inserted_runs(original_text: str, final_text: str) -> list[Span]:
    """Spans in ``final_text`` of every inserted run of the semantic diff."""
    runs: list[Span] = []
    position = 0
    for op, text in compute_semantic_diff(original_text, final_text):
        if op == DIFF_DELETE:
            continue
        if op == DIFF_INSERT:
            runs.append(Span(start=position, end=position + len(text)))
        position += len(text)
    return runs


def _is_covered(run: Span, located: list[Span]) -> bool:
    return any(run.overlaps(span) for span in located)


def find_missing(
    original_text: str,
    final_text: str,
    located_changes: Iterable[Change],
) -> list[Change]:
    """Synthesise a change for each inserted run no located change overlaps.

    Failures inside the diff are logged and produce no extra changes.
    """
    if original_text == final_text:
        return []

    located = [change.loc for change in located_changes if change.loc is not None]
    try:
        runs = inserted_runs(original_text, final_text)
    except Exception:
        logger.warning("Diff fallback failed; continuing without it", exc_info=True)
        return []

    missing: list[Change] = []
    for run in runs:
        if _is_covered(run, located):
            continue
        missing.append(
            Change(
                id=f"d{len(missing) + 1}",
                type=ChangeType.OTHER,
                severity=Severity.RECOMMENDED,
                reason=AUTO_DETECTED_REASON,
                before="",
                after=final_text[run.start : run.end],
                context_before=final_text[max(0, run.start - CONTEXT_CHARS) : run.start],
                context_after=final_text[run.end : run.end + CONTEXT_CHARS],
                loc=run,
            )
        )
    logger.debug("Diff fallback found %d unreported insertion(s)", len(missing))
    return missing
