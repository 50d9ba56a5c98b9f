"""Exceptions raised at the scheduler's I/O boundaries."""
from __future__ import annotations

from typing import Dict, Optional


class ScheduleError(Exception):
    """Base class for scheduler errors."""


class InvalidScheduleFile(ScheduleError, ValueError):
    """A schedule file could not be parsed."""


class ScheduleSaveError(ScheduleError):
    """The backend rejected or failed part of a save.

    Pending edits are kept, so the save can be retried. `assigned` maps the
    temporary ids that were created before the failure to their new ids.
    """

    def __init__(self, message: str, *, task_id: Optional[str] = None, assigned: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.assigned = dict(assigned or {})
