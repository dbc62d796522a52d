"""Character-level diff alignment shared by the projector and the diff fallback."""

from __future__ import annotations

from typing import List, Tuple

from diff_match_patch import diff_match_patch

DIFF_DELETE = diff_match_patch.DIFF_DELETE
DIFF_INSERT = diff_match_patch.DIFF_INSERT
DIFF_EQUAL = diff_match_patch.DIFF_EQUAL

Diff = Tuple[int, str]


def _differ() -> diff_match_patch:
    dmp = diff_match_patch()
    # Paragraph-sized inputs; never trade accuracy for speed.
    dmp.Diff_Timeout = 0
    return dmp


def compute_alignment(old_text: str, new_text: str) -> List[Diff]:
    """Raw equal/insert/delete runs turning ``old_text`` into ``new_text``."""
    return _differ().diff_main(old_text, new_text, False)


def compute_semantic_diff(old_text: str, new_text: str) -> List[Diff]:
    """Diff with adjacent runs merged into human-sized edits.

    ``diff_cleanupSemantic`` folds short equalities that sit between edits into
    the surrounding delete/insert pair, which avoids noisy single-character
    fragments.
    """
    dmp = _differ()
    diffs = dmp.diff_main(old_text, new_text, False)
    dmp.diff_cleanupSemantic(diffs)
    return diffs


def map_offset(diffs: List[Diff], offset: int, *, prefer_right: bool) -> int:
    """Translate an offset in the old text to the new text.

    An insertion exactly at ``offset`` is placed before the mapped point when
    ``prefer_right`` is set, and after it otherwise, so a span's start and end
    never absorb text inserted at their boundaries. Offsets inside a deleted
    run collapse to the point where the run used to be.
    """
    old_pos = 0
    new_pos = 0
    for op, text in diffs:
        length = len(text)
        if op == DIFF_EQUAL:
            if offset < old_pos + length or (
                offset == old_pos + length and not prefer_right
            ):
                return new_pos + (offset - old_pos)
            old_pos += length
            new_pos += length
        elif op == DIFF_DELETE:
            if offset < old_pos + length:
                return new_pos
            old_pos += length
        else:
            if old_pos == offset and not prefer_right:
                return new_pos
            new_pos += length
    return new_pos + (offset - old_pos)
