"""Tests for the append-only change log."""

from prefixkit.changelog import ChangeLogEntry, ChangeLogStore
from prefixkit.results import FileChange


def _entry(title="Cap connection retries", date="2026-03-04 10:15"):
    return ChangeLogEntry(
        title=title,
        date=date,
        files_modified=[FileChange("Sources/Net/ConnectionManager.swift", 6, 11), FileChange("README.md")],
        reasoning="connect() and retry() recursed without bound.",
        changes=["Added maxAttempts"],
        notes="Backoff left for later.",
    )


def test_render_sections():
    text = _entry().render()
    assert text.startswith("## Cap connection retries\n\n- **Date:** 2026-03-04 10:15\n")
    assert "  - `Sources/Net/ConnectionManager.swift` (lines 6-11)" in text
    assert "  - `README.md` (whole file)" in text
    assert "### Reasoning\n\nconnect() and retry() recursed without bound." in text
    assert "### Changes\n\n- Added maxAttempts" in text
    assert "### Notes" in text
    assert text.rstrip().endswith("---")


def test_render_omits_empty_sections():
    text = ChangeLogEntry(title="Tidy", date="2026-03-04 10:15").render()
    assert "### Reasoning" not in text
    assert "### Changes" not in text
    assert "Files modified" not in text


def test_append_only(tmp_path):
    store = ChangeLogStore(tmp_path / "changelog")
    first = store.append(_entry(), "cap-retries")
    second = store.append(_entry("Second pass", "2026-03-04 11:00"), "cap-retries")

    assert first == second
    assert first.name == "2026-03-04_cap-retries.md"
    text = first.read_text(encoding="utf-8")
    assert text.index("Cap connection retries") < text.index("Second pass")


def test_append_fills_missing_date(tmp_path):
    store = ChangeLogStore(tmp_path)
    entry = ChangeLogEntry(title="Undated")
    path = store.append(entry, "undated")
    assert entry.date
    assert path.name.startswith(entry.date[:10])


def test_entries_are_sorted_and_limited(tmp_path):
    store = ChangeLogStore(tmp_path)
    store.append(_entry("Later", "2026-03-05 09:00"), "b")
    store.append(_entry("Earlier", "2026-03-04 09:00"), "a")
    store.append(_entry("Latest", "2026-03-06 09:00"), "c")

    assert [e["title"] for e in store.entries(2)] == ["Later", "Latest"]
    assert store.entries(0) == []
    assert store.entries()[0]["file"] == "2026-03-04_a.md"


def test_entries_missing_dir(tmp_path):
    assert ChangeLogStore(tmp_path / "missing").entries() == []
