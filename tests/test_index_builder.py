"""Tests for index assembly and rendering."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from tagmap.config import TagMapConfig
from tagmap.indexing import IndexBuilder, build_index
from tagmap.indexing.builder import UNTAGGED_HEADING
from tagmap.vault import Document, DocumentMetadata, MetadataError

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
GENERATED = datetime(2024, 6, 2, 9, 30, 15)


def _doc(path: str, *, modified: int = 0, created: int = 0) -> Document:
    """Return a document whose timestamps are offsets in hours from BASE_TIME.

    Args:
        path: Vault-relative path.
        modified: Hours added to BASE_TIME for the modification time.
        created: Hours added to BASE_TIME for the creation time.

    Returns:
        Document: Document model for tests.
    """
    return Document.from_path(
        path,
        modified_at=BASE_TIME + timedelta(hours=modified),
        created_at=BASE_TIME + timedelta(hours=created),
    )


class _Lookup:
    """Metadata lookup keyed by document path."""

    def __init__(self, entries: dict[str, DocumentMetadata]) -> None:
        self.entries = entries

    def __call__(self, document: Document) -> Optional[DocumentMetadata]:
        return self.entries.get(document.path)


def _inline(*tags: str) -> DocumentMetadata:
    return DocumentMetadata(tags=list(tags))


def _front(*tags: str) -> DocumentMetadata:
    return DocumentMetadata(frontmatter={"tags": list(tags)})


def test_end_to_end_example_buckets() -> None:
    config = TagMapConfig(include_nested_tags=True, show_tag_hierarchy=True, exclude_tags=[])
    docs = [_doc("A.md"), _doc("B.md"), _doc("C.md")]
    lookup = _Lookup({"A.md": _front("proj"), "B.md": _inline("#proj/work")})

    assignment = IndexBuilder(config).collect(docs, lookup)

    assert {tag: [d.basename for d in bucket] for tag, bucket in assignment.buckets.items()} == {
        "proj": ["A", "B"],
        "proj/work": ["B"],
    }
    assert [d.basename for d in assignment.untagged] == ["C"]
    assert assignment.sorted_tags() == ["proj", "proj/work"]


def test_output_note_and_excluded_folders_are_skipped() -> None:
    config = TagMapConfig(exclude_folders=["archive", ".trash"])
    docs = [
        _doc("Maps of Content.md"),
        _doc("archive/old.md"),
        _doc("archived/kept.md"),
        _doc(".trash/gone.md"),
        _doc("notes/live.md"),
    ]
    lookup = _Lookup({path: _front("t") for path in [d.path for d in docs]})

    assignment = IndexBuilder(config).collect(docs, lookup)

    assert [d.path for d in assignment.documents] == ["archived/kept.md", "notes/live.md"]
    assert [d.path for d in assignment.buckets["t"]] == ["archived/kept.md", "notes/live.md"]


def test_excluded_tags_have_no_section() -> None:
    config = TagMapConfig(exclude_tags=["draft"])
    docs = [_doc("a.md"), _doc("b.md")]
    lookup = _Lookup({"a.md": _front("draft", "idea"), "b.md": _front("draft")})

    assignment = IndexBuilder(config).collect(docs, lookup)

    assert "draft" not in assignment.buckets
    assert [d.path for d in assignment.buckets["idea"]] == ["a.md"]
    # A note whose only tags are excluded is listed once, as untagged.
    assert [d.path for d in assignment.untagged] == ["b.md"]


def test_failed_metadata_lookup_is_isolated() -> None:
    def lookup(document: Document) -> DocumentMetadata:
        if document.path == "broken.md":
            raise MetadataError("bad front-matter")
        return _front("ok")

    assignment = IndexBuilder(TagMapConfig()).collect([_doc("broken.md"), _doc("fine.md")], lookup)

    assert [d.path for d in assignment.untagged] == ["broken.md"]
    assert [d.path for d in assignment.buckets["ok"]] == ["fine.md"]


def test_failed_extraction_is_isolated() -> None:
    def extractor(metadata: Optional[DocumentMetadata], config: TagMapConfig) -> set[str]:
        if metadata is not None and metadata.frontmatter.get("broken"):
            raise TypeError("unhashable tag")
        return {"ok"}

    lookup = _Lookup({"broken.md": DocumentMetadata(frontmatter={"broken": True})})
    builder = IndexBuilder(TagMapConfig(), extractor=extractor)

    assignment = builder.collect([_doc("broken.md"), _doc("fine.md")], lookup)

    assert [d.path for d in assignment.untagged] == ["broken.md"]
    assert [d.path for d in assignment.buckets["ok"]] == ["fine.md"]


@pytest.mark.parametrize(
    ("sort_by", "expected"),
    [
        ("name", ["alpha", "Beta", "gamma"]),
        ("modified", ["Beta", "alpha", "gamma"]),
        ("created", ["gamma", "alpha", "Beta"]),
    ],
)
def test_bucket_sorting(sort_by: str, expected: list[str]) -> None:
    config = TagMapConfig(sort_by=sort_by)
    docs = [
        _doc("gamma.md", modified=1, created=9),
        _doc("Beta.md", modified=5, created=1),
        _doc("alpha.md", modified=3, created=4),
    ]
    lookup = _Lookup({d.path: _front("t") for d in docs})

    assignment = IndexBuilder(config).collect(docs, lookup)

    assert [d.basename for d in assignment.buckets["t"]] == expected


def test_render_matches_expected_layout() -> None:
    config = TagMapConfig(output_name="Index", show_file_count=True)
    docs = [_doc("C.md"), _doc("work/B.md"), _doc("A.md")]
    lookup = _Lookup({"A.md": _front("proj"), "work/B.md": _inline("#proj", "#later")})

    text = build_index(docs, lookup, config, generated_at=GENERATED)

    assert text == (
        "# Index\n"
        "\n"
        "*Generated automatically: 2024-06-02 09:30:15*\n"
        "\n"
        "**Total notes:** 3 | **Total tags:** 2\n"
        "\n"
        f"## {UNTAGGED_HEADING}\n"
        "\n"
        "*Notes: 1*\n"
        "\n"
        "- 📝 [[C]]\n"
        "\n"
        "## 🏷️ later\n"
        "\n"
        "*Notes: 1*\n"
        "\n"
        "- 📝 [[B]] *(work/B.md)*\n"
        "\n"
        "## 🏷️ proj\n"
        "\n"
        "*Notes: 2*\n"
        "\n"
        "- 📝 [[A]]\n"
        "- 📝 [[B]] *(work/B.md)*\n"
        "\n"
    )


def test_render_optional_lines() -> None:
    config = TagMapConfig(show_file_count=False, show_last_modified=True)
    doc = _doc("A.md", modified=2)
    expected_date = doc.modified_at.astimezone().strftime("%Y-%m-%d")

    text = build_index([doc], _Lookup({"A.md": _front("x")}), config, generated_at=GENERATED)

    assert "*Notes:" not in text
    assert f"- 📝 [[A]] - *modified: {expected_date}*" in text
    assert UNTAGGED_HEADING not in text


def test_build_is_idempotent_for_same_inputs() -> None:
    config = TagMapConfig(show_tag_hierarchy=True)
    docs = [_doc("x/one.md"), _doc("two.md"), _doc("three.md")]
    lookup = _Lookup({"x/one.md": _inline("#a/b"), "two.md": _front("a", "c")})

    first = build_index(docs, lookup, config, generated_at=GENERATED)
    second = build_index(list(reversed(docs)), lookup, config, generated_at=GENERATED)

    assert first == second
