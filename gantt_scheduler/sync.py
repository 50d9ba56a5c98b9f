"""Saving an edited schedule through a backend.

Phases are written before subtasks so that a subtask whose phase was created
in the same save can be sent with the phase's new id.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .coordinator import ScheduleEditor
from .errors import ScheduleSaveError
from .models import PersistedId, Task, TaskId, TemporaryId

logger = logging.getLogger(__name__)


class ScheduleBackend(Protocol):
    """CRUD collaborator that stores task records."""

    def create_task(self, record: Dict[str, Any]) -> str:
        """Persist a new task and return the id it was given."""

    def update_task(self, task_id: str, record: Dict[str, Any]) -> None:
        """Overwrite an existing task."""


@dataclass
class SaveReport:
    created: List[PersistedId] = field(default_factory=list)
    updated: List[PersistedId] = field(default_factory=list)
    id_map: Dict[TemporaryId, PersistedId] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated)


class SchedulePersister:
    """Two-pass save with temporary id remapping.

    Ids handed out by the backend are remembered across attempts, so retrying
    after a partial failure updates the tasks that were already created
    instead of creating them twice.
    """

    def __init__(self, backend: ScheduleBackend) -> None:
        self.backend = backend
        self._assigned: Dict[TemporaryId, PersistedId] = {}

    def save(self, editor: ScheduleEditor) -> SaveReport:
        tasks = editor.snapshot()
        phases = [task for task in tasks if task.is_phase]
        subtasks = [task for task in tasks if not task.is_phase]
        report = SaveReport()
        deferred: List[Task] = []
        current: Optional[Task] = None
        try:
            for current in phases + subtasks:
                self._persist(current, report, deferred)
            # Dependencies on tasks created later in the same save.
            for current in deferred:
                target = self._assigned.get(current.id, current.id)
                self.backend.update_task(str(target), self._record_for(current, target))
        except Exception as exc:  # backend failures are reported to the user
            failed = str(current.id) if current is not None else None
            logger.error("Saving task %s failed: %s", failed, exc)
            raise ScheduleSaveError(
                f"Could not save the schedule ({exc}). Your changes are kept; try saving again.",
                task_id=failed,
                assigned={str(k): str(v) for k, v in self._assigned.items()},
            ) from exc

        mapping: Dict[TaskId, TaskId] = dict(self._assigned)
        editor.commit()
        editor.store.rekey(mapping)
        editor.overlay.rekey(mapping)
        self._assigned.clear()
        logger.info(
            "Saved schedule: %d created, %d updated", len(report.created), len(report.updated)
        )
        return report

    def _persist(self, task: Task, report: SaveReport, deferred: List[Task]) -> None:
        if isinstance(task.dependency, TemporaryId) and task.dependency not in self._assigned:
            deferred.append(task)
        if isinstance(task.id, TemporaryId) and task.id not in self._assigned:
            record = self._record_for(task, task.id)
            new_id = PersistedId(str(self.backend.create_task(record)))
            self._assigned[task.id] = new_id
            report.created.append(new_id)
            report.id_map[task.id] = new_id
            return
        target = self._assigned.get(task.id, task.id)
        self.backend.update_task(str(target), self._record_for(task, target))
        if isinstance(target, PersistedId):
            report.updated.append(target)

    def _record_for(self, task: Task, target: TaskId) -> Dict[str, Any]:
        remapped = dataclasses.replace(
            task,
            id=target,
            parent_task_id=self._assigned.get(task.parent_task_id, task.parent_task_id),
            dependency=self._assigned.get(task.dependency, task.dependency),
        )
        return remapped.to_record()


class InMemoryBackend:
    """Backend keeping records in a dict, handing out sequential ids."""

    def __init__(self, prefix: str = "task") -> None:
        self.prefix = prefix
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self._counter = 0

    def create_task(self, record: Dict[str, Any]) -> str:
        self._counter += 1
        task_id = f"{self.prefix}-{self._counter}"
        self.records[task_id] = dict(record, id=task_id, isNew=False)
        self.calls.append(("create", task_id))
        return task_id

    def update_task(self, task_id: str, record: Dict[str, Any]) -> None:
        if task_id not in self.records:
            raise KeyError(f"unknown task {task_id}")
        self.records[task_id] = dict(record, id=task_id, isNew=False)
        self.calls.append(("update", task_id))

    def load(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self.records.values()]
