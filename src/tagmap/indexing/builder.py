"""Build the aggregated tag index note from a vault snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from tagmap.config.models import TagMapConfig
from tagmap.vault.errors import VaultError
from tagmap.vault.models import Document, DocumentMetadata

from .tags import extract_tags

LOGGER = logging.getLogger(__name__)

MetadataLookup = Callable[[Document], Optional[DocumentMetadata]]
TagExtractor = Callable[[Optional[DocumentMetadata], TagMapConfig], Set[str]]

UNTAGGED_HEADING = "❓ Untagged"
TAG_HEADING_PREFIX = "🏷️ "
ENTRY_PREFIX = "- 📝 "
GENERATED_FORMAT = "%Y-%m-%d %H:%M:%S"
MODIFIED_FORMAT = "%Y-%m-%d"


@dataclass(slots=True)
class TagAssignment:
    """Per-run grouping of notes by tag.

    Attributes:
        documents: Notes that survived output and folder filtering.
        buckets: Mapping of tag to the notes that carry it.
        untagged: Notes without any non-excluded tag.
    """

    documents: List[Document] = field(default_factory=list)
    buckets: Dict[str, List[Document]] = field(default_factory=dict)
    untagged: List[Document] = field(default_factory=list)

    @property
    def tag_count(self) -> int:
        """Return the number of tag sections."""
        return len(self.buckets)

    def sorted_tags(self) -> List[str]:
        """Return tags in section order."""
        return sorted(self.buckets)


class IndexBuilder:
    """Group notes by tag and render the index note."""

    def __init__(self, config: TagMapConfig, *, extractor: TagExtractor = extract_tags) -> None:
        self.config = config
        self.extractor = extractor

    def is_indexed(self, document: Document) -> bool:
        """Return whether ``document`` is an input to the index."""
        if document.name == self.config.output_filename:
            return False
        return not any(
            document.path.startswith(f"{folder}/") for folder in self.config.exclude_folders
        )

    def collect(self, documents: Iterable[Document], metadata_for: MetadataLookup) -> TagAssignment:
        """Filter ``documents`` and assign each one to its tag buckets.

        Args:
            documents: Vault snapshot to index.
            metadata_for: Lookup returning parsed metadata for a document.

        Returns:
            TagAssignment: Sorted buckets for the run.
        """
        excluded = set(self.config.exclude_tags)
        assignment = TagAssignment()

        for document in documents:
            if not self.is_indexed(document):
                continue
            assignment.documents.append(document)

            tags = self._tags_for(document, metadata_for) - excluded
            if not tags:
                assignment.untagged.append(document)
                continue
            for tag in tags:
                assignment.buckets.setdefault(tag, []).append(document)

        self._sort(assignment.untagged)
        for bucket in assignment.buckets.values():
            self._sort(bucket)
        return assignment

    def render(self, assignment: TagAssignment, generated_at: datetime) -> str:
        """Render ``assignment`` as Markdown."""
        lines: List[str] = [
            f"# {self.config.output_name}",
            "",
            f"*Generated automatically: {generated_at.strftime(GENERATED_FORMAT)}*",
            "",
            f"**Total notes:** {len(assignment.documents)} | **Total tags:** {assignment.tag_count}",
            "",
        ]
        if assignment.untagged:
            lines.extend(self._section(UNTAGGED_HEADING, assignment.untagged))
        for tag in assignment.sorted_tags():
            lines.extend(self._section(f"{TAG_HEADING_PREFIX}{tag}", assignment.buckets[tag]))
        return "\n".join(lines) + "\n"

    def build(
        self,
        documents: Iterable[Document],
        metadata_for: MetadataLookup,
        *,
        generated_at: Optional[datetime] = None,
    ) -> str:
        """Collect and render in one step."""
        assignment = self.collect(documents, metadata_for)
        return self.render(assignment, generated_at or datetime.now().astimezone())

    # Internal helpers -------------------------------------------------

    def _tags_for(self, document: Document, metadata_for: MetadataLookup) -> Set[str]:
        try:
            metadata = metadata_for(document)
            return self.extractor(metadata, self.config)
        except (VaultError, TypeError, ValueError) as exc:
            LOGGER.warning("Skipping tags for %s: %s", document.path, exc)
            return set()

    def _sort(self, documents: List[Document]) -> None:
        mode = self.config.sort_by
        if mode == "modified":
            documents.sort(key=lambda doc: doc.modified_at, reverse=True)
        elif mode == "created":
            documents.sort(key=lambda doc: doc.created_at, reverse=True)
        else:
            documents.sort(key=lambda doc: (doc.basename.casefold(), doc.basename))

    def _section(self, heading: str, documents: List[Document]) -> List[str]:
        lines = [f"## {heading}", ""]
        if self.config.show_file_count:
            lines.extend([f"*Notes: {len(documents)}*", ""])
        lines.extend(self._entry(document) for document in documents)
        lines.append("")
        return lines

    def _entry(self, document: Document) -> str:
        entry = f"{ENTRY_PREFIX}[[{document.basename}]]"
        if document.path != document.name:
            entry += f" *({document.path})*"
        if self.config.show_last_modified:
            modified = document.modified_at.astimezone().strftime(MODIFIED_FORMAT)
            entry += f" - *modified: {modified}*"
        return entry


def build_index(
    documents: Iterable[Document],
    metadata_for: MetadataLookup,
    config: TagMapConfig,
    *,
    extractor: TagExtractor = extract_tags,
    generated_at: Optional[datetime] = None,
) -> str:
    """Return the rendered index note for ``documents``."""
    builder = IndexBuilder(config, extractor=extractor)
    return builder.build(documents, metadata_for, generated_at=generated_at)


__all__ = [
    "IndexBuilder",
    "MetadataLookup",
    "TagAssignment",
    "TagExtractor",
    "UNTAGGED_HEADING",
    "build_index",
]
