from __future__ import annotations

from copyedit.models import ChangeType, Severity


def test_change_type_values() -> None:
    assert ChangeType.CITATION_FORMAT.value == "citation-format"
    assert ChangeType.INSERT_AT_END.value == "insert-at-end"
    assert "spelling" in ChangeType.all_values()
    assert len(ChangeType.all_values()) == 11


def test_change_type_coerce_is_lenient() -> None:
    assert ChangeType.coerce("Punctuation") is ChangeType.PUNCTUATION
    assert ChangeType.coerce("citation_format") is ChangeType.CITATION_FORMAT
    assert ChangeType.coerce("insert at end") is ChangeType.INSERT_AT_END
    assert ChangeType.coerce("tone") is ChangeType.OTHER
    assert ChangeType.coerce(None) is ChangeType.OTHER


def test_severity_values() -> None:
    assert set(Severity.all_values()) == {"required", "recommended", "optional", "uncertain"}
