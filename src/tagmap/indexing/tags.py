"""Tag extraction from parsed note metadata."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Set

from tagmap.config.models import TagMapConfig
from tagmap.vault.models import DocumentMetadata

TAG_MARKER = "#"
TAG_SEPARATOR = "/"
FRONTMATTER_TAGS_KEY = "tags"


def parent_tags(tag: str) -> List[str]:
    """Return every proper ancestor of a nested tag, shortest first.

    ``parent_tags("a/b/c")`` returns ``["a", "a/b"]``.
    """
    parts = tag.split(TAG_SEPARATOR)
    return [TAG_SEPARATOR.join(parts[:index]) for index in range(1, len(parts))]


def _frontmatter_tags(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


def extract_tags(metadata: Optional[DocumentMetadata], config: TagMapConfig) -> Set[str]:
    """Return the normalized tag set for a single note.

    Front-matter tags are taken as-is. Inline tags lose their leading ``#``;
    nested inline tags are dropped unless ``include_nested_tags`` is set, and
    contribute their parent tags when ``show_tag_hierarchy`` is set. Excluded
    tags are not filtered here.

    Args:
        metadata: Parsed metadata, or ``None`` when the note has none.
        config: Active configuration.

    Returns:
        Set[str]: Non-empty, stripped tags.
    """
    if metadata is None:
        return set()

    tags: List[str] = list(_frontmatter_tags(metadata.frontmatter.get(FRONTMATTER_TAGS_KEY)))

    for raw in metadata.tags:
        tag = raw[len(TAG_MARKER) :] if raw.startswith(TAG_MARKER) else raw
        nested = TAG_SEPARATOR in tag
        if config.include_nested_tags or not nested:
            tags.append(tag)
        if config.show_tag_hierarchy and nested:
            tags.extend(parent_tags(tag))

    return {tag.strip() for tag in tags if tag.strip()}


__all__ = ["FRONTMATTER_TAGS_KEY", "TAG_MARKER", "TAG_SEPARATOR", "extract_tags", "parent_tags"]
