"""Busy-guarded execution of the index pipeline."""

from .coordinator import Notifier, RunCoordinator, RunReport, log_notifier

__all__ = ["Notifier", "RunCoordinator", "RunReport", "log_notifier"]
