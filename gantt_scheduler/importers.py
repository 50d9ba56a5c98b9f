"""Turning AI breakdowns and planning templates into schedule tasks.

Imported tasks go through `ScheduleEditor` like any manual edit: they are
added to the store, their seeded dates and dependencies land in the overlay,
and phases are rolled up from their children.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .coordinator import ScheduleEditor
from .dates import HOURS_PER_DAY, hours_to_days, parse_duration, whole_days
from .models import Task, TaskId, TaskPriority

logger = logging.getLogger(__name__)


@dataclass
class TaskSuggestion:
    """One task proposed by the AI breakdown service."""

    name: str
    description: str = ""
    estimated_days: float = 1.0
    priority: TaskPriority = TaskPriority.MEDIUM
    complexity: str = "medium"
    risk_level: int = 0
    category: str = ""
    skills: List[str] = field(default_factory=list)
    deliverables: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    key: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TaskSuggestion":
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("suggestion has no name")
        try:
            risk = int(data.get("riskLevel") or 0)
        except (TypeError, ValueError):
            risk = 0
        return cls(
            name=name,
            description=str(data.get("description") or ""),
            estimated_days=parse_duration(data.get("estimatedDays")).value,
            priority=TaskPriority.parse(data.get("priority")),
            complexity=str(data.get("complexity") or "medium"),
            risk_level=max(0, min(100, risk)),
            category=str(data.get("category") or ""),
            skills=_string_list(data.get("skills")),
            deliverables=_string_list(data.get("deliverables")),
            dependencies=_string_list(data.get("dependencies")),
            key=str(data["id"]) if data.get("id") else None,
        )

    def details(self) -> Dict[str, Any]:
        """Fields without a Task counterpart, kept on the task record."""
        return {
            "complexity": self.complexity,
            "riskLevel": self.risk_level,
            "category": self.category,
            "skills": list(self.skills),
            "deliverables": list(self.deliverables),
        }


@dataclass
class SuggestedPhase:
    name: str
    description: str = ""
    tasks: List[TaskSuggestion] = field(default_factory=list)
    key: Optional[str] = None


def suggestions_from_payload(payload: Any) -> Tuple[List[TaskSuggestion], List[SuggestedPhase]]:
    """Read the breakdown service's JSON shape.

    Accepts either a bare list of suggestions or a mapping with `tasks` and
    optional `phases` (alias `suggestedPhases`). Phase task lists may hold
    full suggestions or ids/names of entries in `tasks`. Malformed entries
    are skipped.
    """
    if isinstance(payload, list):
        raw_tasks, raw_phases = payload, []
    elif isinstance(payload, Mapping):
        raw_tasks = payload.get("tasks") or []
        raw_phases = payload.get("phases") or payload.get("suggestedPhases") or []
    else:
        raise TypeError(f"breakdown payload must be a list or dict, got {type(payload).__name__}")

    suggestions: List[TaskSuggestion] = []
    for item in raw_tasks:
        suggestion = _suggestion_or_none(item)
        if suggestion is not None:
            suggestions.append(suggestion)

    lookup = _suggestion_lookup(suggestions)
    phases: List[SuggestedPhase] = []
    for raw in raw_phases:
        if not isinstance(raw, Mapping) or not str(raw.get("name") or "").strip():
            logger.debug("Skipping malformed phase entry: %r", raw)
            continue
        members: List[TaskSuggestion] = []
        for item in raw.get("tasks") or []:
            if isinstance(item, str):
                found = lookup.get(item.strip().lower())
            else:
                found = _suggestion_or_none(item)
                if found is not None:
                    found = lookup.get((found.key or found.name).lower(), found)
            if found is not None:
                members.append(found)
        phases.append(
            SuggestedPhase(
                name=str(raw["name"]).strip(),
                description=str(raw.get("description") or ""),
                tasks=members,
                key=str(raw["id"]) if raw.get("id") else None,
            )
        )
    return suggestions, phases


def import_ai_breakdown(
    editor: ScheduleEditor,
    suggestions: Sequence[TaskSuggestion],
    phases: Optional[Sequence[SuggestedPhase]] = None,
    *,
    today: Optional[dt.date] = None,
) -> List[TaskId]:
    """Add suggested tasks to the schedule and return the new task ids.

    Grouped suggestions become subtasks of a new phase; the rest become
    top-level tasks. Starts are seeded one after another from `today`, then
    the first resolvable dependency of each suggestion is linked (FS, no
    lag), which re-places the dependent task.
    """
    cursor = today or editor.today
    created: List[TaskId] = []
    placed: List[Tuple[TaskSuggestion, TaskId]] = []
    grouped = set()

    for phase in phases or []:
        if not phase.tasks:
            continue
        phase_id = editor.store.next_temporary_id()
        days = sum(whole_days(member.estimated_days) for member in phase.tasks)
        editor.add_task(
            Task(id=phase_id, name=phase.name, description=phase.description, estimated_days=float(days))
        )
        created.append(phase_id)
        for suggestion in phase.tasks:
            if id(suggestion) in grouped:
                continue
            grouped.add(id(suggestion))
            task_id, cursor = _add_suggestion(editor, suggestion, phase_id, cursor)
            created.append(task_id)
            placed.append((suggestion, task_id))

    for suggestion in suggestions:
        if id(suggestion) in grouped:
            continue
        task_id, cursor = _add_suggestion(editor, suggestion, None, cursor)
        created.append(task_id)
        placed.append((suggestion, task_id))

    by_key: Dict[str, TaskId] = {}
    for suggestion, task_id in placed:
        by_key.setdefault(suggestion.name.lower(), task_id)
        if suggestion.key:
            by_key.setdefault(suggestion.key.lower(), task_id)

    for suggestion, task_id in placed:
        targets = [by_key.get(name.strip().lower()) for name in suggestion.dependencies]
        targets = [target for target in targets if target is not None and target != task_id]
        if not targets:
            continue
        if len(targets) > 1:
            logger.debug("Task %s lists %d predecessors; linking the first only", task_id, len(targets))
        result = editor.change_dependency(task_id, targets[0])
        if not result.applied:
            logger.warning("Could not link %s to %s: %s", task_id, targets[0], result.reason)

    logger.info("Imported %d task(s) from AI breakdown", len(created))
    return created


@dataclass
class TemplateTaskStub:
    name: str
    description: str = ""
    estimated_days: Optional[float] = None
    estimated_hours: Optional[float] = None

    def duration_days(self, hours_per_day: float = HOURS_PER_DAY) -> float:
        if self.estimated_days is not None:
            return parse_duration(self.estimated_days).value
        if self.estimated_hours is not None:
            return parse_duration(hours_to_days(self.estimated_hours, hours_per_day)).value
        return 1.0


@dataclass
class TemplatePhase:
    id: str
    name: str
    description: str = ""
    estimated_days: Optional[float] = None
    tasks: List[TemplateTaskStub] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TemplatePhase":
        stubs = [
            TemplateTaskStub(
                name=str(item.get("name") or ""),
                description=str(item.get("description") or ""),
                estimated_days=_optional_float(item.get("estimatedDays")),
                estimated_hours=_optional_float(item.get("estimatedHours")),
            )
            for item in data.get("tasks") or []
            if isinstance(item, Mapping) and item.get("name")
        ]
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            description=str(data.get("description") or ""),
            estimated_days=_optional_float(data.get("estimatedDays")),
            tasks=stubs,
        )


def template_phases_from_payload(payload: Any) -> List[TemplatePhase]:
    """Read template phases from a list or a mapping with `phases`.

    Entries that are not mappings or have no `id` are skipped.
    """
    raw = payload.get("phases") if isinstance(payload, Mapping) else payload
    if not isinstance(raw, list):
        raise TypeError(f"template payload must hold a list of phases, got {type(raw).__name__}")
    phases: List[TemplatePhase] = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("id"):
            logger.debug("Skipping malformed template phase: %r", item)
            continue
        phases.append(TemplatePhase.from_payload(item))
    return phases


def import_template_phases(
    editor: ScheduleEditor,
    phases: Iterable[TemplatePhase],
    selected: Optional[Sequence[str]] = None,
    *,
    hours_per_day: float = HOURS_PER_DAY,
) -> List[TaskId]:
    """Add template phases (and their task stubs) that are not yet present.

    `selected` restricts and orders the phases by template phase id. Returns
    the ids of the phases added.
    """
    available = {phase.id: phase for phase in phases}
    order = list(selected) if selected is not None else list(available)
    existing = {task.template_phase_id for task in editor.store if task.template_phase_id}
    added: List[TaskId] = []

    for template_id in order:
        phase = available.get(template_id)
        if phase is None:
            logger.warning("Template phase %s not found", template_id)
            continue
        if phase.id in existing:
            logger.info("Template phase %s already in schedule, skipping", phase.id)
            continue
        phase_id = editor.store.next_temporary_id()
        days = phase.estimated_days
        if days is None:
            days = sum(stub.duration_days(hours_per_day) for stub in phase.tasks) or 1.0
        editor.add_task(
            Task(
                id=phase_id,
                name=phase.name,
                description=phase.description,
                estimated_days=parse_duration(days).value,
                template_phase_id=phase.id,
                work_effort=f"{hours_per_day:g} hours/day",
            )
        )
        for stub in phase.tasks:
            editor.add_task(
                Task(
                    id=editor.store.next_temporary_id(),
                    name=stub.name,
                    description=stub.description,
                    parent_task_id=phase_id,
                    estimated_days=stub.duration_days(hours_per_day),
                )
            )
        existing.add(phase.id)
        added.append(phase_id)

    logger.info("Added %d template phase(s)", len(added))
    return added


def _add_suggestion(
    editor: ScheduleEditor, suggestion: TaskSuggestion, parent_id: Optional[TaskId], cursor: dt.date
) -> Tuple[TaskId, dt.date]:
    task_id = editor.store.next_temporary_id()
    editor.add_task(
        Task(
            id=task_id,
            name=suggestion.name,
            description=suggestion.description,
            priority=suggestion.priority,
            parent_task_id=parent_id,
            estimated_days=suggestion.estimated_days,
            extra=suggestion.details(),
        )
    )
    editor.change_start(task_id, cursor)
    return task_id, cursor + dt.timedelta(days=whole_days(suggestion.estimated_days))


def _suggestion_or_none(item: Any) -> Optional[TaskSuggestion]:
    if not isinstance(item, Mapping):
        logger.debug("Skipping malformed suggestion: %r", item)
        return None
    try:
        return TaskSuggestion.from_payload(item)
    except ValueError as exc:
        logger.debug("Skipping suggestion: %s", exc)
        return None


def _suggestion_lookup(suggestions: Iterable[TaskSuggestion]) -> Dict[str, TaskSuggestion]:
    lookup: Dict[str, TaskSuggestion] = {}
    for suggestion in suggestions:
        lookup.setdefault(suggestion.name.lower(), suggestion)
        if suggestion.key:
            lookup.setdefault(suggestion.key.lower(), suggestion)
    return lookup


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, Iterable):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
