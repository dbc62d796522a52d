"""Re-express a span computed against one text state in a later state."""

from __future__ import annotations

import logging

from copyedit.models import Change, Span

from .diffing import compute_alignment, map_offset

logger = logging.getLogger(__name__)


def project(old_start: int, old_end: int, old_text: str, new_text: str) -> Span | None:
    """Map ``[old_start, old_end)`` from ``old_text`` onto ``new_text``.

    Returns None when the span's text was deleted (a non-empty span collapses
    to a point) or when the alignment cannot be computed.
    """
    if old_text == new_text:
        return Span(start=old_start, end=old_end)
    if not 0 <= old_start <= old_end <= len(old_text):
        return None

    try:
        diffs = compute_alignment(old_text, new_text)
        new_start = map_offset(diffs, old_start, prefer_right=True)
        new_end = map_offset(diffs, old_end, prefer_right=False)
    except Exception:
        logger.debug("Alignment failed for span [%d, %d)", old_start, old_end, exc_info=True)
        return None

    if old_start == old_end:
        # A point can land on either side of an insertion; keep it at the start.
        return Span(start=new_start, end=new_start)
    if new_end <= new_start:
        return None
    return Span(start=new_start, end=new_end)


def project_changes(changes: list[Change], old_text: str, new_text: str) -> int:
    """Project every located change in place; returns how many lost their span."""
    if old_text == new_text:
        return 0
    lost = 0
    for change in changes:
        if change.loc is None:
            continue
        change.loc = project(change.loc.start, change.loc.end, old_text, new_text)
        if change.loc is None:
            lost += 1
            logger.debug("Change %s could not be projected; left unlocated", change.id)
    return lost
