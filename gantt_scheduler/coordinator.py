"""Change propagation for an edit session over one schedule.

`ScheduleEditor` is the only thing that writes to the task store and the
overlay while a schedule is open. Each `change_*` call records the edit in
the overlay, recalculates the edited task with the date engine and then
cascades according to the propagation policy.
"""
from __future__ import annotations

import datetime as dt
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .dates import (
    derive_dependent_dates,
    derive_duration_from_range,
    derive_finish_from_start,
    derive_parent_aggregate,
    parse_date,
    parse_duration,
    parse_lag,
    resolve_start,
)
from .models import DateRange, DependencyType, Task, TaskId, parse_task_id
from .overlay import EditableOverlay, OverlayField
from .store import TaskStore

logger = logging.getLogger(__name__)


class EditState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    RECALCULATING = "recalculating"


class PropagationPolicy(str, Enum):
    """How far one edit cascades.

    SINGLE_HOP: direct dependents (duration edits only) and the parent phases
    of every task whose dates moved. A chain A -> B -> C needs a second edit
    on B before C moves.
    TRANSITIVE: every date-changing edit walks all transitive dependents and
    re-aggregates every phase it touches, never visiting a task twice.
    """

    SINGLE_HOP = "single_hop"
    TRANSITIVE = "transitive"

    @classmethod
    def parse(cls, value: Any) -> "PropagationPolicy":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.SINGLE_HOP


@dataclass(frozen=True)
class ChangeResult:
    """What a single edit did.

    `recalculated` lists dependents whose dates were re-derived from a
    predecessor, `aggregated` the phases rolled up afterwards.
    """

    task_id: Optional[TaskId]
    applied: bool = True
    defaulted: bool = False
    recalculated: Tuple[TaskId, ...] = ()
    aggregated: Tuple[TaskId, ...] = ()
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, task_id: Optional[TaskId], reason: str) -> "ChangeResult":
        return cls(task_id=task_id, applied=False, reason=reason)


class ScheduleEditor:
    """Edit session over a task store."""

    def __init__(
        self,
        store: Optional[TaskStore] = None,
        overlay: Optional[EditableOverlay] = None,
        *,
        policy: PropagationPolicy = PropagationPolicy.SINGLE_HOP,
        today: Optional[dt.date] = None,
    ) -> None:
        self.store = store if store is not None else TaskStore()
        self.overlay = overlay if overlay is not None else EditableOverlay()
        self.policy = policy
        self._today = today
        self._state = EditState.IDLE

    @property
    def state(self) -> EditState:
        return self._state

    @property
    def today(self) -> dt.date:
        return self._today or dt.date.today()

    @property
    def has_unsaved_changes(self) -> bool:
        return self.overlay.has_changes

    # --- Views -------------------------------------------------------------

    def effective(self, task_id: Optional[TaskId]) -> Optional[Task]:
        """The task as currently edited (overlay applied)."""
        task = self.store.get(task_id)
        if task is None:
            return None
        return self.overlay.effective(task)

    def snapshot(self) -> List[Task]:
        """Every task in display order with pending edits applied."""
        return [self.overlay.effective(task) for task in self.store]

    def snapshot_records(self) -> List[Dict[str, Any]]:
        """Serializable form of `snapshot` for the save collaborator."""
        return [task.to_record() for task in self.snapshot()]

    def dependents_of(self, task_id: TaskId) -> List[TaskId]:
        """Tasks whose current dependency is `task_id`, in display order."""
        return [task.id for task in self.snapshot() if task.dependency == task_id]

    def would_create_cycle(self, task_id: TaskId, predecessor_id: TaskId) -> bool:
        """True if making `predecessor_id` the predecessor of `task_id` closes a loop.

        Dates flow from a predecessor to its dependents and from subtasks up
        to their phase, so a phase counts as fed by each of its children.
        """
        seen: Set[TaskId] = set()
        pending = deque([predecessor_id])
        while pending:
            current = pending.popleft()
            if current == task_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            task = self.effective(current)
            if task is None:
                continue
            if task.dependency is not None:
                pending.append(task.dependency)
            pending.extend(child.id for child in self.store.children_of(current))
        return False

    # --- Edits -------------------------------------------------------------

    def change_start(self, task_id: TaskId, value: Any) -> ChangeResult:
        task = self.effective(task_id)
        if task is None:
            return ChangeResult.rejected(task_id, "unknown task")
        self._state = EditState.EDITING
        start = resolve_start(task, value, self.today)
        self.overlay.set_start(task_id, start.value)
        try:
            self._state = EditState.RECALCULATING
            finish = derive_finish_from_start(task, start.value, task.estimated_days, today=self.today)
            self.overlay.set_finish(task_id, finish.value)
            recalculated, aggregated = self._propagate(task_id, include_dependents=False)
        finally:
            self._state = EditState.IDLE
        return ChangeResult(task_id, defaulted=start.defaulted, recalculated=recalculated, aggregated=aggregated)

    def change_finish(self, task_id: TaskId, value: Any) -> ChangeResult:
        task = self.effective(task_id)
        if task is None:
            return ChangeResult.rejected(task_id, "unknown task")
        self._state = EditState.EDITING
        finish = parse_date(value)
        defaulted = finish is None
        if finish is None:
            finish = task.end_date or self.today
        self.overlay.set_finish(task_id, finish)
        try:
            self._state = EditState.RECALCULATING
            start = resolve_start(task, task.start_date, self.today)
            if start.defaulted:
                self.overlay.set_start(task_id, start.value)
            duration = derive_duration_from_range(start.value, finish)
            if finish < start.value:
                # Inverted range: keep the start and shrink to a single day.
                self.overlay.set_finish(task_id, start.value)
                defaulted = True
            self.overlay.set_duration(task_id, float(duration.value))
            recalculated, aggregated = self._propagate(task_id, include_dependents=False)
        finally:
            self._state = EditState.IDLE
        return ChangeResult(task_id, defaulted=defaulted, recalculated=recalculated, aggregated=aggregated)

    def change_duration(self, task_id: TaskId, value: Any) -> ChangeResult:
        task = self.effective(task_id)
        if task is None:
            return ChangeResult.rejected(task_id, "unknown task")
        self._state = EditState.EDITING
        duration = parse_duration(value)
        self.overlay.set_duration(task_id, duration.value)
        try:
            self._state = EditState.RECALCULATING
            start = resolve_start(task, task.start_date, self.today)
            if start.defaulted:
                self.overlay.set_start(task_id, start.value)
            finish = derive_finish_from_start(task, start.value, duration.value, today=self.today)
            self.overlay.set_finish(task_id, finish.value)
            recalculated, aggregated = self._propagate(task_id, include_dependents=True)
        finally:
            self._state = EditState.IDLE
        return ChangeResult(task_id, defaulted=duration.defaulted, recalculated=recalculated, aggregated=aggregated)

    def change_dependency(self, task_id: TaskId, predecessor: Any) -> ChangeResult:
        task = self.effective(task_id)
        if task is None:
            return ChangeResult.rejected(task_id, "unknown task")
        predecessor_id = parse_task_id(predecessor)
        if predecessor_id is not None and self.would_create_cycle(task_id, predecessor_id):
            logger.warning("Rejected dependency %s -> %s: it would form a cycle", predecessor_id, task_id)
            return ChangeResult.rejected(task_id, "dependency cycle")
        self._state = EditState.EDITING
        self.overlay.set_dependency(task_id, predecessor_id)
        if predecessor_id is None:
            self._state = EditState.IDLE
            return ChangeResult(task_id)
        if predecessor_id not in self.store:
            logger.debug("Task %s depends on unknown task %s; dates left as they are", task_id, predecessor_id)
        return self._relink(task_id)

    def change_dependency_type(self, task_id: TaskId, value: Any) -> ChangeResult:
        if self.effective(task_id) is None:
            return ChangeResult.rejected(task_id, "unknown task")
        link = DependencyType.parse(value)
        if link is None:
            logger.debug("Ignoring unknown dependency type %r for task %s", value, task_id)
            return ChangeResult.rejected(task_id, "unknown dependency type")
        self._state = EditState.EDITING
        self.overlay.set_dependency_type(task_id, link)
        return self._relink(task_id)

    def change_lag(self, task_id: TaskId, value: Any) -> ChangeResult:
        if self.effective(task_id) is None:
            return ChangeResult.rejected(task_id, "unknown task")
        self._state = EditState.EDITING
        lag = parse_lag(value)
        self.overlay.set_lag_time(task_id, lag.value)
        result = self._relink(task_id)
        if lag.defaulted:
            return ChangeResult(
                task_id,
                applied=result.applied,
                defaulted=True,
                recalculated=result.recalculated,
                aggregated=result.aggregated,
            )
        return result

    def change_work_effort(self, task_id: TaskId, value: Optional[str]) -> ChangeResult:
        if self.effective(task_id) is None:
            return ChangeResult.rejected(task_id, "unknown task")
        text = (value or "").strip() or None
        self.overlay.set(OverlayField.WORK_EFFORT, task_id, text)
        return ChangeResult(task_id)

    def change_progress(self, task_id: TaskId, value: Any) -> ChangeResult:
        task = self.effective(task_id)
        if task is None:
            return ChangeResult.rejected(task_id, "unknown task")
        try:
            progress = max(0, min(100, int(round(float(value)))))
            defaulted = False
        except (TypeError, ValueError):
            progress, defaulted = task.progress_percentage, True
        self.overlay.set(OverlayField.PROGRESS, task_id, progress)
        aggregated: Tuple[TaskId, ...] = ()
        if task.parent_task_id is not None and self._aggregate_phase(task.parent_task_id):
            aggregated = (task.parent_task_id,)
        return ChangeResult(task_id, defaulted=defaulted, aggregated=aggregated)

    # --- Structure ---------------------------------------------------------

    def add_task(self, task: Task, *, index: Optional[int] = None) -> ChangeResult:
        self.store.add(task, index=index)
        aggregated: Tuple[TaskId, ...] = ()
        if task.parent_task_id is not None and self._aggregate_phase(task.parent_task_id):
            aggregated = (task.parent_task_id,)
        return ChangeResult(task.id, aggregated=aggregated)

    def remove_task(self, task_id: TaskId) -> List[Task]:
        """Delete a task (and a phase's subtasks) together with pending edits."""
        parent_id = self.store.get(task_id).parent_task_id if task_id in self.store else None
        removed = self.store.remove(task_id)
        for task in removed:
            self.overlay.discard(task.id)
        if parent_id is not None:
            self._aggregate_phase(parent_id)
        return removed

    def clear_schedule(self) -> None:
        self.store.clear()
        self.overlay.clear()

    def commit(self) -> int:
        """Fold pending edits into the store."""
        return self.overlay.merge_into(self.store)

    def discard(self) -> None:
        """Drop pending edits, returning to the stored values."""
        self.overlay.clear()

    def recalculate_all(self) -> List[TaskId]:
        """Re-derive every dependent and phase until nothing moves.

        Dependents are processed after their predecessors. Tasks caught in a
        dependency cycle are skipped. Returns the ids whose dates changed.
        """
        changed: List[TaskId] = []
        self._state = EditState.RECALCULATING
        try:
            for _ in range(len(self.store) + 1):
                moved = self._recalculate_pass()
                if not moved:
                    break
                changed.extend(task_id for task_id in moved if task_id not in changed)
        finally:
            self._state = EditState.IDLE
        return changed

    # --- Internals ---------------------------------------------------------

    def _relink(self, task_id: TaskId) -> ChangeResult:
        try:
            self._state = EditState.RECALCULATING
            self._recalculate_dependent(task_id)
            recalculated, aggregated = self._propagate(task_id, include_dependents=False)
        finally:
            self._state = EditState.IDLE
        return ChangeResult(task_id, recalculated=recalculated, aggregated=aggregated)

    def _propagate(
        self, origin: TaskId, *, include_dependents: bool
    ) -> Tuple[Tuple[TaskId, ...], Tuple[TaskId, ...]]:
        if self.policy is PropagationPolicy.TRANSITIVE:
            return self._propagate_transitive(origin)
        recalculated: List[TaskId] = []
        if include_dependents:
            for dependent_id in self.dependents_of(origin):
                if self._recalculate_dependent(dependent_id):
                    recalculated.append(dependent_id)
        aggregated = self._aggregate_parents([origin, *recalculated])
        return tuple(recalculated), tuple(aggregated)

    def _propagate_transitive(self, origin: TaskId) -> Tuple[Tuple[TaskId, ...], Tuple[TaskId, ...]]:
        # Each task has at most one predecessor, so breadth-first order already
        # reaches a predecessor before its dependents.
        visited: Set[TaskId] = {origin}
        recalculated: List[TaskId] = []
        aggregated: List[TaskId] = []
        sources = deque([origin])
        while sources:
            moved: List[TaskId] = []
            while sources:
                current = sources.popleft()
                moved.append(current)
                for dependent_id in self.dependents_of(current):
                    if dependent_id in visited:
                        continue
                    visited.add(dependent_id)
                    if self._recalculate_dependent(dependent_id):
                        recalculated.append(dependent_id)
                        sources.append(dependent_id)
            for phase_id in self._aggregate_parents(moved):
                if phase_id not in aggregated:
                    aggregated.append(phase_id)
                if phase_id not in visited:
                    visited.add(phase_id)
                    sources.append(phase_id)
        return tuple(recalculated), tuple(aggregated)

    def _recalculate_dependent(self, task_id: TaskId) -> bool:
        """Place a task from its predecessor. False when there is nothing to do."""
        task = self.effective(task_id)
        if task is None or task.dependency is None:
            return False
        predecessor = self.effective(task.dependency)
        if predecessor is None:
            return False
        current = DateRange(task.start_date, task.end_date) if task.has_schedule() else None
        placed = derive_dependent_dates(
            task.dependency_type,
            predecessor.start_date,
            predecessor.end_date,
            task.lag_time_days,
            task.estimated_days,
            current=current,
        )
        if placed is None:
            return False
        self.overlay.set_start(task_id, placed.start)
        self.overlay.set_finish(task_id, placed.finish)
        return True

    def _aggregate_parents(self, task_ids: Iterable[TaskId]) -> List[TaskId]:
        aggregated: List[TaskId] = []
        for task_id in task_ids:
            task = self.effective(task_id)
            if task is None or task.parent_task_id is None:
                continue
            if task.parent_task_id in aggregated:
                continue
            if self._aggregate_phase(task.parent_task_id):
                aggregated.append(task.parent_task_id)
        return aggregated

    def _aggregate_phase(self, phase_id: TaskId) -> bool:
        if phase_id not in self.store:
            return False
        children = [self.overlay.effective(child) for child in self.store.children_of(phase_id)]
        aggregate = derive_parent_aggregate(children)
        if aggregate is None:
            return False
        if aggregate.start is not None:
            self.overlay.set_start(phase_id, aggregate.start)
        if aggregate.finish is not None:
            self.overlay.set_finish(phase_id, aggregate.finish)
        self.overlay.set(OverlayField.PROGRESS, phase_id, aggregate.progress_percentage)
        return True

    def _recalculate_pass(self) -> List[TaskId]:
        before = {task.id: (task.start_date, task.end_date, task.progress_percentage) for task in self.snapshot()}
        for task_id in self._dependency_order():
            self._recalculate_dependent(task_id)
        for phase in self.store.phases():
            self._aggregate_phase(phase.id)
        moved = []
        for task in self.snapshot():
            if before.get(task.id) != (task.start_date, task.end_date, task.progress_percentage):
                moved.append(task.id)
        return moved

    def _dependency_order(self) -> List[TaskId]:
        """Tasks with a known predecessor, predecessors first; cycles dropped."""
        tasks = self.snapshot()
        linked: Dict[TaskId, TaskId] = {}
        looped: List[TaskId] = []
        for task in tasks:
            if task.dependency not in self.store:
                continue
            if self.would_create_cycle(task.id, task.dependency):
                looped.append(task.id)
            else:
                linked[task.id] = task.dependency
        ordered: List[TaskId] = []
        placed: Set[TaskId] = set()
        ready = deque(task.id for task in tasks if task.id not in linked)
        waiting: Dict[TaskId, List[TaskId]] = {}
        for task_id, predecessor_id in linked.items():
            waiting.setdefault(predecessor_id, []).append(task_id)
        while ready:
            current = ready.popleft()
            if current in placed:
                continue
            placed.add(current)
            if current in linked:
                ordered.append(current)
            ready.extend(waiting.get(current, []))
        skipped = looped + [task_id for task_id in linked if task_id not in placed]
        if skipped:
            logger.warning("Skipping %d task(s) caught in a dependency cycle: %s", len(skipped), skipped)
        return ordered
