"""Errors raised while reading or writing vault documents."""


class VaultError(Exception):
    """Base exception for vault operations."""


class StorageError(VaultError):
    """Raised when a document cannot be listed, read, written, or created."""


class MetadataError(VaultError):
    """Raised when a document's front-matter cannot be parsed."""
