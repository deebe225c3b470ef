"""Run coordination for index generation."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from tagmap.config.models import TagMapConfig
from tagmap.indexing.builder import IndexBuilder
from tagmap.vault.models import Document
from tagmap.vault.storage import MARKDOWN_SUFFIX, Vault

LOGGER = logging.getLogger(__name__)

Notifier = Callable[[str], None]


def log_notifier(message: str) -> None:
    """Default notification channel that writes to the module logger."""
    LOGGER.info(message)


@dataclass(slots=True)
class RunReport:
    """Outcome of a completed index run.

    Attributes:
        path: Vault-relative path of the index note.
        created: Whether the note was created rather than overwritten.
        document_count: Notes included in the index.
        tag_count: Tag sections rendered.
        untagged_count: Notes listed in the untagged section.
        generated_at: Timestamp embedded in the note.
    """

    path: str
    created: bool
    document_count: int
    tag_count: int
    untagged_count: int
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready payload."""
        return {
            "path": self.path,
            "created": self.created,
            "document_count": self.document_count,
            "tag_count": self.tag_count,
            "untagged_count": self.untagged_count,
            "generated_at": self.generated_at.isoformat(),
        }


class RunCoordinator:
    """Run the index pipeline with at most one run in flight.

    A call made while another run holds the busy guard returns ``None``
    immediately; it is neither queued nor retried.
    """

    def __init__(
        self,
        vault: Vault,
        config: TagMapConfig,
        *,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ) -> None:
        """Initialize the coordinator.

        Args:
            vault: Storage providing documents, metadata, and artifact writes.
            config: Active configuration.
            notifier: User-facing notification channel.
            clock: Source for the generation timestamp.
        """
        self._vault = vault
        self._config = config
        self._notifier = notifier or log_notifier
        self._clock = clock
        self._busy_lock = threading.Lock()

    @property
    def config(self) -> TagMapConfig:
        """Return the active configuration."""
        return self._config

    @property
    def busy(self) -> bool:
        """Return whether a run is in progress."""
        return self._busy_lock.locked()

    @property
    def artifact_path(self) -> str:
        """Return the vault-relative path of the index note."""
        return self._config.output_filename

    def apply_config(self, config: TagMapConfig) -> None:
        """Replace the configuration used by subsequent runs."""
        self._config = config

    def create_or_update(self) -> Optional[RunReport]:
        """Build the index and write it, creating the note when missing.

        Returns:
            Optional[RunReport]: Run outcome, or ``None`` when another run was active.

        Raises:
            StorageError: If the vault cannot be read or the note cannot be written.
        """
        with self._busy() as acquired:
            if not acquired:
                return None
            return self._create_or_update()

    def update(self) -> Optional[RunReport]:
        """Rebuild an existing index note; create it when it is missing.

        Overwrites are silent. A missing note goes through the create path,
        which notifies.

        Returns:
            Optional[RunReport]: Run outcome, or ``None`` when another run was active.

        Raises:
            StorageError: If the vault cannot be read or the note cannot be written.
        """
        with self._busy() as acquired:
            if not acquired:
                return None
            artifact = self._existing_artifact()
            if artifact is None:
                return self._create_or_update()
            report = self._write(created=False)
            LOGGER.debug("Index %s refreshed", report.path)
            return report

    # Internal helpers -------------------------------------------------

    @contextmanager
    def _busy(self) -> Iterator[bool]:
        acquired = self._busy_lock.acquire(blocking=False)
        if not acquired:
            LOGGER.debug("Index run already in progress; ignoring request.")
        try:
            yield acquired
        finally:
            if acquired:
                self._busy_lock.release()

    def _existing_artifact(self) -> Optional[Document]:
        document = self._vault.get(self.artifact_path)
        if document is None or f".{document.extension}" != MARKDOWN_SUFFIX:
            return None
        return document

    def _create_or_update(self) -> RunReport:
        created = self._existing_artifact() is None
        report = self._write(created=created)
        verb = "created" if created else "updated"
        self._notifier(f'Index "{self._config.output_name}" {verb}!')
        return report

    def _write(self, *, created: bool) -> RunReport:
        config = self._config
        builder = IndexBuilder(config)
        generated_at = self._clock()
        assignment = builder.collect(self._vault.list_documents(), self._vault.metadata)
        content = builder.render(assignment, generated_at)
        if created:
            self._vault.create(self.artifact_path, content)
        else:
            self._vault.write(self.artifact_path, content)
        LOGGER.info(
            "Index %s written: notes=%d tags=%d untagged=%d",
            self.artifact_path,
            len(assignment.documents),
            assignment.tag_count,
            len(assignment.untagged),
        )
        return RunReport(
            path=self.artifact_path,
            created=created,
            document_count=len(assignment.documents),
            tag_count=assignment.tag_count,
            untagged_count=len(assignment.untagged),
            generated_at=generated_at,
        )


__all__ = ["Notifier", "RunCoordinator", "RunReport", "log_notifier"]
