"""Debounced and periodic triggers for index regeneration."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

from tagmap.config.models import TagMapConfig
from tagmap.runner.coordinator import RunCoordinator
from tagmap.vault.models import ChangeEvent

LOGGER = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD_SECONDS = 3.0
SECONDS_PER_MINUTE = 60


class Timer(Protocol):
    """Cancelable one-shot timer, the subset of :class:`threading.Timer` in use."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def daemon_timer(interval: float, function: Callable[[], None]) -> Timer:
    """Return a daemon :class:`threading.Timer` so a pending trigger never blocks exit."""
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


def _run_guarded(action: Callable[[], Any], label: str) -> None:
    try:
        action()
    except Exception:  # the next trigger acts as the retry
        LOGGER.exception("%s index run failed", label)


class ChangeScheduler:
    """Collapse bursts of change events into a single ``update()`` call.

    The scheduler is idle until a qualifying event arrives; each further
    qualifying event restarts the quiet period. When the quiet period passes
    without another event, one update runs and the scheduler is idle again.
    """

    def __init__(
        self,
        coordinator: RunCoordinator,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        self._coordinator = coordinator
        self._quiet_period = quiet_period
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Timer] = None

    @property
    def quiet_period(self) -> float:
        """Return the quiet period in seconds."""
        return self._quiet_period

    @property
    def pending(self) -> bool:
        """Return whether an update is scheduled."""
        with self._lock:
            return self._timer is not None

    def qualifies(self, event: ChangeEvent) -> bool:
        """Return whether ``event`` should schedule an update."""
        config = self._coordinator.config
        if not config.auto_update:
            return False
        output = config.output_filename
        if event.kind in ("modified", "created"):
            return event.name != output
        if event.kind == "moved":
            return event.name != output and event.old_name != output
        return True

    def notify(self, event: ChangeEvent) -> bool:
        """Handle a change notification.

        Returns:
            bool: True when the event (re)started the quiet period.
        """
        if not self.qualifies(event):
            return False

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer: Timer
            timer = self._timer_factory(self._quiet_period, lambda: self._fire(timer))
            self._timer = timer
            timer.start()
        LOGGER.debug("Change to %s scheduled an index update", event.path)
        return True

    def cancel(self) -> None:
        """Drop any scheduled update."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, timer: Timer) -> None:
        with self._lock:
            if self._timer is not timer:
                return
            self._timer = None
        _run_guarded(self._coordinator.update, "Debounced")


class PeriodicScheduler:
    """Invoke an action on a fixed interval until stopped."""

    def __init__(
        self,
        action: Callable[[], Any],
        *,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        self._action = action
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Timer] = None
        self._interval_seconds: Optional[float] = None

    @property
    def running(self) -> bool:
        """Return whether the interval trigger is active."""
        with self._lock:
            return self._timer is not None

    @property
    def interval_seconds(self) -> Optional[float]:
        """Return the active interval in seconds, or ``None`` when stopped."""
        with self._lock:
            return self._interval_seconds if self._timer is not None else None

    def start(self, interval_minutes: int) -> None:
        """(Re)start the trigger with ``interval_minutes`` between runs."""
        with self._lock:
            self._cancel_locked()
            self._interval_seconds = float(interval_minutes * SECONDS_PER_MINUTE)
            self._schedule_locked()
        LOGGER.debug("Periodic index updates every %d minute(s)", interval_minutes)

    def restart(self, config: TagMapConfig) -> None:
        """Apply ``config``: cancel the current trigger and start anew when enabled."""
        self.stop()
        if config.auto_update:
            self.start(config.update_interval)

    def stop(self) -> None:
        """Cancel the trigger."""
        with self._lock:
            self._cancel_locked()

    def _schedule_locked(self) -> None:
        assert self._interval_seconds is not None
        timer: Timer
        timer = self._timer_factory(self._interval_seconds, lambda: self._fire(timer))
        self._timer = timer
        timer.start()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, timer: Timer) -> None:
        with self._lock:
            if self._timer is not timer:
                return
        _run_guarded(self._action, "Periodic")
        with self._lock:
            if self._timer is timer:
                self._schedule_locked()


__all__ = [
    "ChangeScheduler",
    "DEFAULT_QUIET_PERIOD_SECONDS",
    "PeriodicScheduler",
    "Timer",
    "TimerFactory",
    "daemon_timer",
]
