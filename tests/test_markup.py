from __future__ import annotations

from copyedit.models import Change, Span
from copyedit.rewrite.markup import render_markup


def test_substitution_insertion_and_deletion_markers() -> None:
    text = "I saw the big cat."
    changes = [
        Change(before="teh", after="the", loc=Span(start=6, end=9)),
        Change(before="", after="big ", loc=Span(start=10, end=14)),
        Change(before="!", after="", loc=Span(start=17, end=17)),
    ]

    assert render_markup(text, changes) == (
        "I saw {--teh--}{++the++} {++big ++}cat{--!--}."
    )


def test_unlocated_changes_are_not_rendered() -> None:
    text = "Plain text."

    assert render_markup(text, [Change(before="a", after="b")]) == text


def test_reasons_become_comments() -> None:
    text = "the end"
    change = Change(before="teh", after="the", reason="Typo.", loc=Span(start=0, end=3))

    assert render_markup(text, [change], include_reasons=True) == (
        "{--teh--}{++the++}{>>Typo.<<} end"
    )


def test_overlapping_spans_render_once() -> None:
    text = "abcdef"
    changes = [
        Change(before="x", after="abc", loc=Span(start=0, end=3)),
        Change(before="y", after="bcd", loc=Span(start=1, end=4)),
    ]

    assert render_markup(text, changes) == "{--x--}{++abc++}def"


def test_markup_ignores_input_order() -> None:
    text = "ab"
    changes = [
        Change(before="B", after="b", loc=Span(start=1, end=2)),
        Change(before="A", after="a", loc=Span(start=0, end=1)),
    ]

    assert render_markup(text, changes) == "{--A--}{++a++}{--B--}{++b++}"
