"""Vault storage, metadata parsing, and shared document models."""

from .errors import MetadataError, StorageError, VaultError
from .models import ChangeEvent, ChangeKind, Document, DocumentMetadata
from .parser import MetadataParser, split_frontmatter
from .storage import MARKDOWN_SUFFIX, Vault

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "Document",
    "DocumentMetadata",
    "MARKDOWN_SUFFIX",
    "MetadataError",
    "MetadataParser",
    "StorageError",
    "Vault",
    "VaultError",
    "split_frontmatter",
]
