"""In-memory task store and phase hierarchy index."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .models import Task, TaskId, TemporaryId

logger = logging.getLogger(__name__)


class TaskStore:
    """Ordered tasks plus a phase -> children index.

    Phases keep the order they were loaded or added in; each phase's children
    keep theirs. Iteration yields every phase followed by its children, then
    any subtasks whose parent is unknown.
    """

    def __init__(self) -> None:
        self._tasks: Dict[TaskId, Task] = {}
        self._phase_order: List[TaskId] = []
        self.hierarchy: Dict[TaskId, List[TaskId]] = {}
        self._temp_counter = 0

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskStore":
        store = cls()
        store._load(tasks)
        return store

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "TaskStore":
        """Build a store from flat backend records."""
        return cls.from_tasks(Task.from_record(dict(record)) for record in records)

    # --- Lookup ------------------------------------------------------------

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        seen = set()
        for phase_id in self._phase_order:
            seen.add(phase_id)
            yield self._tasks[phase_id]
            for child_id in self.hierarchy.get(phase_id, []):
                seen.add(child_id)
                yield self._tasks[child_id]
        for task_id, task in self._tasks.items():
            if task_id not in seen:
                yield task

    def get(self, task_id: Optional[TaskId]) -> Optional[Task]:
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def phases(self) -> List[Task]:
        return [self._tasks[phase_id] for phase_id in self._phase_order]

    def children_of(self, phase_id: TaskId) -> List[Task]:
        return [self._tasks[child_id] for child_id in self.hierarchy.get(phase_id, [])]

    def parent_of(self, task_id: TaskId) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        return self.get(task.parent_task_id)

    def orphans(self) -> List[Task]:
        """Subtasks whose parent is not in the store."""
        return [
            task for task in self._tasks.values()
            if not task.is_phase and task.parent_task_id not in self.hierarchy
        ]

    # --- Mutation ----------------------------------------------------------

    def next_temporary_id(self) -> TemporaryId:
        """Allocate an id for a task that has not been persisted yet."""
        used = [task_id.counter for task_id in self._tasks if isinstance(task_id, TemporaryId)]
        self._temp_counter = max([self._temp_counter, *used]) + 1
        return TemporaryId(self._temp_counter)

    def add(self, task: Task, *, index: Optional[int] = None) -> None:
        """Insert a task (replacing one with the same id)."""
        if task.id in self._tasks:
            self.remove(task.id, cascade=False)
        self._tasks[task.id] = task
        if task.is_phase:
            order = self._phase_order
            order.insert(len(order) if index is None else index, task.id)
            self.hierarchy.setdefault(task.id, [])
            self._adopt_orphans(task.id)
            return
        parent_id = task.parent_task_id
        if parent_id not in self.hierarchy:
            logger.debug("Subtask %s references unknown phase %s", task.id, parent_id)
            return
        children = self.hierarchy[parent_id]
        children.insert(len(children) if index is None else index, task.id)

    def update(self, task: Task) -> None:
        """Replace a stored task in place, keeping its position."""
        current = self._tasks.get(task.id)
        if current is None or current.parent_task_id != task.parent_task_id:
            self.add(task)
            return
        self._tasks[task.id] = task

    def remove(self, task_id: TaskId, *, cascade: bool = True) -> List[Task]:
        """Remove a task; removing a phase also removes its subtasks."""
        task = self._tasks.pop(task_id, None)
        if task is None:
            return []
        removed = [task]
        if task_id in self.hierarchy:
            children = self.hierarchy.pop(task_id)
            self._phase_order.remove(task_id)
            for child_id in children:
                child = self._tasks.get(child_id)
                if child is None:
                    continue
                if cascade:
                    removed.append(self._tasks.pop(child_id))
        elif task.parent_task_id in self.hierarchy:
            siblings = self.hierarchy[task.parent_task_id]
            if task_id in siblings:
                siblings.remove(task_id)
        return removed

    def clear(self) -> None:
        self._tasks.clear()
        self._phase_order.clear()
        self.hierarchy.clear()

    def rekey(self, mapping: Mapping[TaskId, TaskId]) -> None:
        """Replace ids (and references to them) after a save."""
        if not mapping:
            return
        tasks = list(self)
        self.clear()
        for task in tasks:
            task.id = mapping.get(task.id, task.id)
            if task.parent_task_id is not None:
                task.parent_task_id = mapping.get(task.parent_task_id, task.parent_task_id)
            if task.dependency is not None:
                task.dependency = mapping.get(task.dependency, task.dependency)
        self._load(tasks)

    def _load(self, tasks: Iterable[Task]) -> None:
        pending: List[Task] = []
        for task in tasks:
            if task.is_phase:
                self.add(task)
            else:
                pending.append(task)
        # Subtasks may appear before their phase in a flat listing.
        for task in pending:
            self.add(task)

    def _adopt_orphans(self, phase_id: TaskId) -> None:
        children = self.hierarchy[phase_id]
        for task in self._tasks.values():
            if task.parent_task_id == phase_id and task.id not in children:
                children.append(task.id)
