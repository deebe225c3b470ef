"""Change-driven and periodic index regeneration."""

from .scheduler import ChangeScheduler, PeriodicScheduler, daemon_timer
from .service import TagMapService

__all__ = ["ChangeScheduler", "PeriodicScheduler", "TagMapService", "daemon_timer"]
