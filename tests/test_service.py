"""Tests for the long-running index service."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fakes import FakeClock
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from tagmap.config import ConfigManager, TagMapConfig
from tagmap.vault import ChangeEvent, Vault
from tagmap.watch import TagMapService
from tagmap.watch.service import _VaultEventHandler


class FakeObserver:
    """Observer double recording scheduled handlers."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[Any, str, bool]] = []
        self.started = False
        self.stopped = False

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        return None


def _service(tmp_path: Path) -> tuple[TagMapService, FakeClock, list[FakeObserver], list[str]]:
    """Return a service over a small vault wired to fake timers and observers.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        tuple: Service, virtual clock, created observers, and notifications.
    """
    root = tmp_path / "vault"
    root.mkdir()
    (root / "A.md").write_text("---\ntags: [proj]\n---\n", encoding="utf-8")
    (root / "B.md").write_text("Doing #proj/work\n", encoding="utf-8")
    (root / "C.md").write_text("nothing here\n", encoding="utf-8")

    clock = FakeClock()
    observers: list[FakeObserver] = []
    messages: list[str] = []

    def observer_factory() -> FakeObserver:
        observer = FakeObserver()
        observers.append(observer)
        return observer

    service = TagMapService(
        root,
        config_manager=ConfigManager.for_vault(root, env={}),
        notifier=messages.append,
        timer_factory=clock,  # type: ignore[arg-type]
        observer_factory=observer_factory,
    )
    return service, clock, observers, messages


def test_start_and_stop_manage_observer_and_timers(tmp_path: Path) -> None:
    service, clock, observers, _ = _service(tmp_path)

    service.start()

    assert observers[0].started
    _, path, recursive = observers[0].scheduled[0]
    assert path == str(service.vault.root)
    assert recursive
    assert service.periodic.interval_seconds == 300.0

    service.changes.notify(ChangeEvent(kind="modified", path="A.md"))
    service.stop()

    assert observers[0].stopped
    assert not service.running
    assert not service.changes.pending
    assert not service.periodic.running
    assert clock.live == []


def test_debounced_change_writes_index(tmp_path: Path) -> None:
    service, clock, _, messages = _service(tmp_path)
    service.start()

    for name in ("A.md", "B.md", "C.md"):
        service.handle_event(ChangeEvent(kind="modified", path=name))
    clock.advance(3.0)

    index = service.vault.root / "Maps of Content.md"
    assert index.exists()
    text = index.read_text(encoding="utf-8")
    assert "**Total notes:** 3 | **Total tags:** 2" in text
    assert "## 🏷️ proj" in text
    assert messages == ['Index "Maps of Content" created!']
    service.stop()


def test_save_config_persists_and_restarts_periodic(tmp_path: Path) -> None:
    service, _, _, _ = _service(tmp_path)
    service.start()

    service.save_config(TagMapConfig(update_interval=10, show_tag_hierarchy=True))

    assert service.periodic.interval_seconds == 600.0
    assert service.config.show_tag_hierarchy
    stored = ConfigManager.for_vault(service.vault.root, env={}).load()
    assert stored.update_interval == 10

    service.save_config(TagMapConfig(auto_update=False))
    assert not service.periodic.running
    service.stop()


def test_config_file_change_is_reloaded(tmp_path: Path) -> None:
    service, _, _, _ = _service(tmp_path)
    manager = ConfigManager.for_vault(service.vault.root, env={})
    manager.save({"output_name": "Index", "update_interval": 2})
    service.start()

    scheduled = service.handle_event(ChangeEvent(kind="modified", path=".tagmap/config.yaml"))

    assert not scheduled
    assert service.config.output_name == "Index"
    assert service.periodic.interval_seconds == 120.0
    service.stop()


def test_invalid_config_file_keeps_previous_settings(tmp_path: Path) -> None:
    service, _, _, _ = _service(tmp_path)
    path = service.vault.root / ".tagmap" / "config.yaml"
    path.write_text("update_interval: 0\n", encoding="utf-8")

    assert service.reload_config() is None
    assert service.config.update_interval == 5


def test_event_handler_translates_watchdog_events(tmp_path: Path) -> None:
    root = tmp_path / "vault"
    root.mkdir()
    vault = Vault(root)
    received: list[ChangeEvent] = []
    handler = _VaultEventHandler(vault, received.append, root / ".tagmap" / "config.yaml")

    handler.on_modified(FileModifiedEvent(str(root / "notes" / "a.md")))
    handler.on_moved(FileMovedEvent(str(root / "old.md"), str(root / "new.md")))
    handler.on_deleted(DirDeletedEvent(str(root / "archive")))
    handler.on_modified(FileModifiedEvent(str(root / ".tagmap" / "config.yaml")))
    handler.on_created(FileCreatedEvent(str(root / "picture.png")))
    handler.on_created(FileCreatedEvent(str(root / ".Maps of Content.md.x1.tmp")))
    handler.on_modified(DirModifiedEvent(str(root / "notes")))

    assert received == [
        ChangeEvent(kind="modified", path="notes/a.md"),
        ChangeEvent(kind="moved", path="new.md", old_path="old.md"),
        ChangeEvent(kind="deleted", path="archive"),
        ChangeEvent(kind="modified", path=".tagmap/config.yaml"),
    ]


def test_root_note_named_like_outside_settings_file_is_not_a_reload(tmp_path: Path) -> None:
    root = tmp_path / "vault"
    root.mkdir()
    (root / "a.md").write_text("#idea\n", encoding="utf-8")
    manager = ConfigManager(tmp_path / "settings" / "config.yaml", env={})
    clock = FakeClock()
    service = TagMapService(
        root,
        config_manager=manager,
        timer_factory=clock,  # type: ignore[arg-type]
        observer_factory=FakeObserver,
    )
    manager.save({"output_name": "Elsewhere"})

    service.handle_event(ChangeEvent(kind="modified", path="config.yaml"))

    assert service.config.output_name == "Maps of Content"
    assert service.changes.pending
