"""Render located changes over the revised text as CriticMarkup."""

from __future__ import annotations

import logging
from typing import Iterable

from copyedit.models import Change

logger = logging.getLogger(__name__)


def _critic_markup(before: str, after: str, comment: str | None) -> str:
    parts = []
    if before and after:
        parts.append(f"{{--{before}--}}{{++{after}++}}")
    elif after:
        parts.append(f"{{++{after}++}}")
    elif before:
        parts.append(f"{{--{before}--}}")
    if comment:
        parts.append(f"{{>>{comment}<<}}")
    return "".join(parts)


def render_markup(
    revised_text: str,
    changes: Iterable[Change],
    *,
    include_reasons: bool = False,
) -> str:
    """Annotate ``revised_text`` with one CriticMarkup block per located change.

    The marked-up insertion is always the slice of ``revised_text`` under the
    change's span, so stripping the markup's deletions yields the revised text.
    Zero-width spans render as a deletion marker at that point. Unlocated
    changes and spans overlapping an already rendered one are skipped.
    """
    located = sorted(
        (change for change in changes if change.loc is not None),
        key=lambda change: (change.loc.start, change.loc.end),
    )

    pieces: list[str] = []
    cursor = 0
    for change in located:
        span = change.loc
        if span.start < cursor or span.end > len(revised_text):
            logger.debug("Skipping change %s with span %s in markup", change.id, span)
            continue
        after = revised_text[span.start : span.end]
        if not after and not change.before:
            continue
        pieces.append(revised_text[cursor : span.start])
        comment = change.reason if include_reasons else None
        pieces.append(_critic_markup(change.before, after, comment))
        cursor = span.end
    pieces.append(revised_text[cursor:])
    return "".join(pieces)
