"""Tests for Markdown document discovery."""

from datetime import UTC, datetime, timedelta

import pytest

from ragprep.documents.discovery import discover_documents, is_recently_enhanced

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_missing_directory_is_created(tmp_path):
    target = tmp_path / "docs-enhanced"

    assert discover_documents(target, repo_root=tmp_path) == []
    assert target.is_dir()


def test_documents_are_sorted_and_backups_skipped(docs_dir, tmp_path):
    (docs_dir / "b.md").write_text("# B\n\nSecond.\n", encoding="utf-8")
    (docs_dir / "a.md").write_text("---\ntitle: Alpha\n---\n# A\n\nFirst doc.\n", encoding="utf-8")
    (docs_dir / "a.backup.md").write_text("# Old\n", encoding="utf-8")
    (docs_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    documents = discover_documents(docs_dir, repo_root=tmp_path, now=NOW)

    assert [doc.relative_path for doc in documents] == ["docs/a.md", "docs/b.md"]
    first, second = documents
    assert first.title == "Alpha"
    assert first.frontmatter == {"title": "Alpha"}
    assert first.body == "# A\n\nFirst doc.\n"
    assert first.word_count == 4
    assert first.absolute_path == str((docs_dir / "a.md").resolve())
    assert second.title == "b"
    assert all(doc.needs_enhancement for doc in documents)


def test_paths_outside_repo_root_are_relative_to_docs_dir(docs_dir, tmp_path):
    (docs_dir / "guide.md").write_text("# Guide\n", encoding="utf-8")
    elsewhere = tmp_path / "other-root"
    elsewhere.mkdir()

    documents = discover_documents(docs_dir, repo_root=elsewhere)

    assert documents[0].relative_path == "guide.md"


def test_recently_enhanced_documents_are_flagged(docs_dir, tmp_path):
    recent = (NOW - timedelta(hours=2)).isoformat().replace("+00:00", "Z")
    stale = (NOW - timedelta(hours=30)).isoformat()
    (docs_dir / "recent.md").write_text(f"---\nenhanced_at: '{recent}'\n---\n# R\n", encoding="utf-8")
    (docs_dir / "stale.md").write_text(f"---\nenhanced_at: '{stale}'\n---\n# S\n", encoding="utf-8")

    documents = discover_documents(docs_dir, repo_root=tmp_path, now=NOW)

    flags = {doc.relative_path: doc.needs_enhancement for doc in documents}
    assert flags == {"docs/recent.md": False, "docs/stale.md": True}


def test_unreadable_file_is_skipped(docs_dir, tmp_path):
    (docs_dir / "good.md").write_text("# Good\n", encoding="utf-8")
    (docs_dir / "bad.md").write_bytes(b"\xff\xfe\x00broken")

    documents = discover_documents(docs_dir, repo_root=tmp_path)

    assert [doc.relative_path for doc in documents] == ["docs/good.md"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, False),
        ("not a date", False),
        ("2024-05-01T11:00:00Z", True),
        ("2024-05-01T11:00:00", True),
        ("2024-04-29T11:00:00+00:00", False),
        (datetime(2024, 5, 1, 6, 0), True),
    ],
)
def test_is_recently_enhanced(value, expected):
    assert is_recently_enhanced({"enhanced_at": value}, 24, NOW) is expected


def test_zero_hour_window_always_reenhances():
    assert is_recently_enhanced({"enhanced_at": "2024-05-01T11:59:00Z"}, 0, NOW) is False
