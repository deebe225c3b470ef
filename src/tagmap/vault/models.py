"""Vault data models shared by the storage, parser, and indexing layers."""

from __future__ import annotations

from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ChangeKind = Literal["modified", "created", "deleted", "moved"]


class Document(BaseModel):
    """A Markdown note stored in the vault.

    Attributes:
        path: POSIX path relative to the vault root (``projects/A.md``).
        name: File name including its extension (``A.md``).
        basename: Display name without the extension (``A``).
        extension: Extension without the leading dot (``md``).
        modified_at: Last modification timestamp.
        created_at: Creation timestamp (birth time when the platform reports one).
    """

    path: str
    name: str
    basename: str
    extension: str
    modified_at: datetime
    created_at: datetime

    @classmethod
    def from_path(cls, path: str, *, modified_at: datetime, created_at: datetime) -> Document:
        """Build a document whose name fields are derived from ``path``."""
        pure = PurePosixPath(path)
        return cls(
            path=pure.as_posix(),
            name=pure.name,
            basename=pure.stem,
            extension=pure.suffix.lstrip("."),
            modified_at=modified_at,
            created_at=created_at,
        )


class DocumentMetadata(BaseModel):
    """Parsed metadata for a document.

    Attributes:
        frontmatter: Key/value fields from the leading YAML block.
        tags: Raw inline tag tokens in document order, marker included (``#proj/work``).
    """

    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class ChangeEvent(BaseModel):
    """A single change notification for a vault file.

    Attributes:
        kind: Type of change observed.
        path: Vault-relative path of the affected file (new path for moves).
        old_path: Previous vault-relative path for ``moved`` events.
    """

    kind: ChangeKind
    path: str
    old_path: Optional[str] = None

    @property
    def name(self) -> str:
        """Return the file name of ``path``."""
        return PurePosixPath(self.path).name

    @property
    def old_name(self) -> Optional[str]:
        """Return the file name of ``old_path`` when present."""
        if self.old_path is None:
            return None
        return PurePosixPath(self.old_path).name


__all__ = ["ChangeKind", "ChangeEvent", "Document", "DocumentMetadata"]
