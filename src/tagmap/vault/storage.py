"""Filesystem-backed vault storage."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional

from .errors import StorageError
from .models import Document, DocumentMetadata
from .parser import MetadataParser

LOGGER = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


def _created_timestamp(stat: os.stat_result) -> float:
    # st_birthtime is only reported on macOS/BSD and recent Windows builds.
    return getattr(stat, "st_birthtime", stat.st_ctime)


class Vault:
    """Read and write Markdown documents under a root directory.

    All paths exchanged with callers are POSIX paths relative to the root.
    """

    def __init__(self, root: Path, *, parser: MetadataParser | None = None) -> None:
        """Initialize the vault.

        Args:
            root: Directory that holds the notes.
            parser: Parser used by :meth:`metadata`; a default parser when omitted.
        """
        self._root = root.expanduser().resolve()
        self._parser = parser or MetadataParser()

    @property
    def root(self) -> Path:
        """Return the resolved vault root."""
        return self._root

    def resolve(self, path: str) -> Path:
        """Return the absolute filesystem path for a vault-relative path."""
        return self._root.joinpath(*PurePosixPath(path).parts)

    def relative(self, path: Path | str) -> str:
        """Return the vault-relative POSIX path for an absolute filesystem path."""
        candidate = Path(path)
        try:
            return candidate.resolve().relative_to(self._root).as_posix()
        except ValueError:
            return candidate.name

    def list_documents(self) -> List[Document]:
        """Return every Markdown document in the vault, ordered by path.

        Raises:
            StorageError: If the vault root cannot be scanned.
        """
        if not self._root.is_dir():
            raise StorageError(f"Vault root {self._root} is not a directory.")
        try:
            documents = [self._describe(path) for path in self._iter_markdown()]
        except OSError as exc:
            raise StorageError(f"Unable to scan vault {self._root}: {exc}") from exc
        return sorted((doc for doc in documents if doc is not None), key=lambda doc: doc.path)

    def get(self, path: str) -> Optional[Document]:
        """Return the document stored at ``path`` or ``None`` when it is not a file."""
        target = self.resolve(path)
        if not target.is_file():
            return None
        return self._describe(target)

    def read(self, path: str) -> str:
        """Return the text of the document at ``path``."""
        try:
            return self.resolve(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Unable to read {path}: {exc}") from exc

    def metadata(self, document: Document) -> DocumentMetadata:
        """Return parsed metadata for ``document``.

        Raises:
            StorageError: If the document cannot be read.
            MetadataError: If the document's front-matter is malformed.
        """
        return self._parser.parse(self.read(document.path))

    def write(self, path: str, content: str) -> Document:
        """Replace the contents of an existing document atomically."""
        target = self.resolve(path)
        if not target.is_file():
            raise StorageError(f"Cannot modify {path}: document does not exist.")
        self._atomic_write(target, content)
        LOGGER.debug("Wrote %d characters to %s", len(content), path)
        return self._require(target)

    def create(self, path: str, content: str) -> Document:
        """Create a new document at ``path``."""
        target = self.resolve(path)
        if target.exists():
            raise StorageError(f"Cannot create {path}: a file already exists.")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Unable to create folder for {path}: {exc}") from exc
        self._atomic_write(target, content)
        LOGGER.debug("Created %s", path)
        return self._require(target)

    # Internal helpers -------------------------------------------------

    def _iter_markdown(self) -> Iterator[Path]:
        for path in self._root.rglob(f"*{MARKDOWN_SUFFIX}"):
            if path.is_file():
                yield path

    def _describe(self, path: Path) -> Optional[Document]:
        try:
            stat = path.stat()
        except OSError:
            # Removed between listing and stat.
            return None
        return Document.from_path(
            path.relative_to(self._root).as_posix(),
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            created_at=datetime.fromtimestamp(_created_timestamp(stat), tz=timezone.utc),
        )

    def _require(self, path: Path) -> Document:
        document = self._describe(path)
        if document is None:
            raise StorageError(f"{path} disappeared after writing.")
        return document

    def _atomic_write(self, target: Path, content: str) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise StorageError(f"Unable to write {target.name}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            os.replace(tmp_name, target)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Unable to write {target.name}: {exc}") from exc


__all__ = ["MARKDOWN_SUFFIX", "Vault"]
