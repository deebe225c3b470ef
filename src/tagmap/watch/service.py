"""Long-running service that keeps the index note current."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tagmap.config import ConfigError, ConfigManager, TagMapConfig
from tagmap.runner.coordinator import Notifier, RunCoordinator, RunReport
from tagmap.vault.models import ChangeEvent, ChangeKind
from tagmap.vault.storage import MARKDOWN_SUFFIX, Vault

from .scheduler import (
    DEFAULT_QUIET_PERIOD_SECONDS,
    ChangeScheduler,
    PeriodicScheduler,
    TimerFactory,
    daemon_timer,
)

LOGGER = logging.getLogger(__name__)

_POLL_SECONDS = 0.5


class TagMapService:
    """Own the coordinator, both schedulers, and the filesystem observer for one vault."""

    def __init__(
        self,
        vault_root: Path,
        *,
        config_manager: Optional[ConfigManager] = None,
        config: Optional[TagMapConfig] = None,
        notifier: Optional[Notifier] = None,
        debounce_override: Optional[float] = None,
        timer_factory: TimerFactory = daemon_timer,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        """Initialize the service.

        Args:
            vault_root: Directory holding the notes.
            config_manager: Settings store; defaults to the vault's settings file.
            config: Already-resolved configuration; loaded from ``config_manager`` when omitted.
            notifier: User-facing notification channel.
            debounce_override: Quiet period in seconds replacing the default.
            timer_factory: Factory for cancelable timers.
            observer_factory: Factory for the watchdog observer.
        """
        self._vault = Vault(vault_root)
        self._manager = config_manager or ConfigManager.for_vault(self._vault.root)
        initial = config if config is not None else self._manager.load()
        self._coordinator = RunCoordinator(self._vault, initial, notifier=notifier)
        quiet_period = (
            max(0.1, debounce_override)
            if debounce_override and debounce_override > 0
            else DEFAULT_QUIET_PERIOD_SECONDS
        )
        self._changes = ChangeScheduler(
            self._coordinator, quiet_period=quiet_period, timer_factory=timer_factory
        )
        self._periodic = PeriodicScheduler(self._coordinator.update, timer_factory=timer_factory)
        self._observer_factory = observer_factory
        self._observer: Optional[object] = None
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def vault(self) -> Vault:
        """Return the vault being indexed."""
        return self._vault

    @property
    def config(self) -> TagMapConfig:
        """Return the active configuration."""
        return self._coordinator.config

    @property
    def coordinator(self) -> RunCoordinator:
        """Return the run coordinator."""
        return self._coordinator

    @property
    def changes(self) -> ChangeScheduler:
        """Return the debounced change scheduler."""
        return self._changes

    @property
    def periodic(self) -> PeriodicScheduler:
        """Return the periodic scheduler."""
        return self._periodic

    @property
    def running(self) -> bool:
        """Return whether the observer is active."""
        return self._observer is not None

    def create_or_update(self) -> Optional[RunReport]:
        """Create or recreate the index note now."""
        return self._coordinator.create_or_update()

    def update(self) -> Optional[RunReport]:
        """Regenerate the index note now."""
        return self._coordinator.update()

    def handle_event(self, event: ChangeEvent) -> bool:
        """Route a change notification to the config reloader or the change scheduler.

        Returns:
            bool: True when the event scheduled an index update.
        """
        if self._is_config_event(event):
            self.reload_config()
            return False
        return self._changes.notify(event)

    def save_config(self, config: TagMapConfig) -> None:
        """Persist ``config`` and apply it immediately."""
        self._manager.save(config)
        self._apply(config)

    def reload_config(self) -> Optional[TagMapConfig]:
        """Re-read the settings file and apply it.

        Returns:
            Optional[TagMapConfig]: The applied configuration, or ``None`` when the
            file could not be loaded and the previous settings were kept.
        """
        try:
            config = self._manager.load(ensure_file=False)
        except ConfigError as exc:
            LOGGER.warning("Keeping previous settings: %s", exc)
            return None
        if config != self.config:
            self._apply(config)
        return config

    def start(self) -> None:
        """Start the observer and the periodic trigger."""
        if self._observer is not None:
            raise RuntimeError("TagMapService is already running.")

        self._stop_event.clear()
        observer = self._observer_factory()
        handler = _VaultEventHandler(self._vault, self.handle_event, self._manager.config_path)
        observer.schedule(handler, str(self._vault.root), recursive=True)  # type: ignore[attr-defined]
        observer.start()  # type: ignore[attr-defined]
        self._observer = observer
        self._periodic.restart(self.config)
        LOGGER.info("Watching %s", self._vault.root)

    def watch(self) -> None:
        """Run until :meth:`stop` is called or the process is interrupted."""
        self.start()
        try:
            while not self._stop_event.wait(_POLL_SECONDS):
                pass
        finally:
            self.stop()

    def stop(self) -> None:
        """Cancel pending triggers and release the observer."""
        self._stop_event.set()
        self._changes.cancel()
        self._periodic.stop()
        if self._observer is not None:
            observer = self._observer
            self._observer = None
            observer.stop()  # type: ignore[attr-defined]
            observer.join(timeout=5)  # type: ignore[attr-defined]

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _apply(self, config: TagMapConfig) -> None:
        self._coordinator.apply_config(config)
        if self.running:
            self._periodic.restart(config)
        LOGGER.info("Settings applied (auto_update=%s)", config.auto_update)

    def _is_config_event(self, event: ChangeEvent) -> bool:
        if event.kind == "deleted":
            return False
        config_path = self._manager.config_path.expanduser().resolve()
        return self._vault.resolve(event.path).resolve() == config_path


class _VaultEventHandler(FileSystemEventHandler):
    """Translate watchdog events into vault-relative change events."""

    def __init__(
        self,
        vault: Vault,
        sink: Callable[[ChangeEvent], object],
        config_path: Path,
    ) -> None:
        self._vault = vault
        self._sink = sink
        self._config_path = config_path.expanduser().resolve()

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._forward("created", event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        self._forward("modified", event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        self._forward("deleted", event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a filesystem move event."""
        self._forward("moved", event)

    def _forward(self, kind: ChangeKind, event: FileSystemEvent) -> None:
        source = Path(os.fsdecode(event.src_path))
        destination = Path(os.fsdecode(event.dest_path)) if kind == "moved" else None

        if event.is_directory:
            # Folder deletes and moves change which notes exist; the rest is noise.
            if kind not in ("deleted", "moved"):
                return
        elif not any(self._relevant(path) for path in (source, destination) if path is not None):
            return

        if destination is not None:
            change = ChangeEvent(
                kind=kind,
                path=self._vault.relative(destination),
                old_path=self._vault.relative(source),
            )
        else:
            change = ChangeEvent(kind=kind, path=self._vault.relative(source))
        self._sink(change)

    def _relevant(self, path: Path) -> bool:
        if path.suffix == MARKDOWN_SUFFIX:
            return True
        return path.expanduser().resolve() == self._config_path


__all__ = ["TagMapService"]
