"""Pending per-field edits that shadow stored task values until saved."""
from __future__ import annotations

import dataclasses
import datetime as dt
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .models import DependencyType, Task, TaskId
from .store import TaskStore


class OverlayField(str, Enum):
    START = "start_date"
    FINISH = "end_date"
    DURATION = "estimated_days"
    WORK_EFFORT = "work_effort"
    DEPENDENCY = "dependency"
    DEPENDENCY_TYPE = "dependency_type"
    LAG_TIME = "lag_time_days"
    PROGRESS = "progress_percentage"


class EditableOverlay:
    """One shadow map per editable field, keyed by task id.

    A key that is present always wins over the stored value, even when the
    stored override is None (used to clear a dependency).
    """

    def __init__(self) -> None:
        self._maps: Dict[OverlayField, Dict[TaskId, Any]] = {name: {} for name in OverlayField}

    def set(self, name: OverlayField, task_id: TaskId, value: Any) -> None:
        self._maps[name][task_id] = value

    def get(self, name: OverlayField, task_id: TaskId, default: Any = None) -> Any:
        return self._maps[name].get(task_id, default)

    def has(self, name: OverlayField, task_id: TaskId) -> bool:
        return task_id in self._maps[name]

    # Named accessors for the fields the coordinator touches most.

    def set_start(self, task_id: TaskId, value: Optional[dt.date]) -> None:
        self.set(OverlayField.START, task_id, value)

    def set_finish(self, task_id: TaskId, value: Optional[dt.date]) -> None:
        self.set(OverlayField.FINISH, task_id, value)

    def set_duration(self, task_id: TaskId, value: float) -> None:
        self.set(OverlayField.DURATION, task_id, value)

    def set_dependency(self, task_id: TaskId, value: Optional[TaskId]) -> None:
        self.set(OverlayField.DEPENDENCY, task_id, value)

    def set_dependency_type(self, task_id: TaskId, value: DependencyType) -> None:
        self.set(OverlayField.DEPENDENCY_TYPE, task_id, value)

    def set_lag_time(self, task_id: TaskId, value: int) -> None:
        self.set(OverlayField.LAG_TIME, task_id, value)

    @property
    def has_changes(self) -> bool:
        return any(self._maps.values())

    def edited_ids(self) -> set:
        ids = set()
        for values in self._maps.values():
            ids.update(values)
        return ids

    def effective(self, task: Task) -> Task:
        """Return a copy of `task` with every override applied."""
        changes = {
            name.value: values[task.id]
            for name, values in self._maps.items()
            if task.id in values
        }
        if not changes:
            return task
        return dataclasses.replace(task, **changes)

    def merge_into(self, store: TaskStore) -> int:
        """Commit overrides into the store and clear them. Returns tasks touched."""
        touched = 0
        for task_id in self.edited_ids():
            task = store.get(task_id)
            if task is None:
                continue
            store.update(self.effective(task))
            touched += 1
        self.clear()
        return touched

    def discard(self, task_id: TaskId) -> None:
        for values in self._maps.values():
            values.pop(task_id, None)

    def clear(self) -> None:
        for values in self._maps.values():
            values.clear()

    def rekey(self, mapping: Mapping[TaskId, TaskId]) -> None:
        """Follow ids replaced by a save, including dependency targets."""
        for name, values in self._maps.items():
            remapped = {mapping.get(task_id, task_id): value for task_id, value in values.items()}
            if name is OverlayField.DEPENDENCY:
                remapped = {
                    task_id: mapping.get(value, value) if value is not None else None
                    for task_id, value in remapped.items()
                }
            self._maps[name] = remapped
