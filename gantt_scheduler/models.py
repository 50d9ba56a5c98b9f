"""Data models shared across the scheduler."""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")

_TEMPORARY_ID_RE = re.compile(r"^temp-(\d+)$")


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        text = str(value or "").strip().lower().replace("-", "_")
        # Older records use "not-started" for work that has not begun.
        if text == "not_started":
            return cls.PENDING
        try:
            return cls(text)
        except ValueError:
            return cls.PENDING


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, value: Any) -> "TaskPriority":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


class DependencyType(str, Enum):
    """Link semantics between a predecessor and its dependent."""

    FS = "FS"
    SS = "SS"
    FF = "FF"
    SF = "SF"

    @classmethod
    def parse(cls, value: Any) -> Optional["DependencyType"]:
        """Return the matching type, or None for anything unrecognized."""
        if isinstance(value, DependencyType):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class TemporaryId:
    """Id of a task created locally and not yet persisted."""

    counter: int

    def __str__(self) -> str:
        return f"temp-{self.counter}"


@dataclass(frozen=True)
class PersistedId:
    """Id assigned by the backend."""

    value: str

    def __str__(self) -> str:
        return self.value


TaskId = Union[TemporaryId, PersistedId]


def parse_task_id(value: Any) -> Optional[TaskId]:
    """Convert a wire id into a tagged id. Blank values mean "no id"."""
    if isinstance(value, (TemporaryId, PersistedId)):
        return value
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _TEMPORARY_ID_RE.match(text)
    if match:
        return TemporaryId(int(match.group(1)))
    return PersistedId(text)


@dataclass(frozen=True)
class Derived(Generic[T]):
    """Result of a derivation.

    `defaulted` is True when the value came from a fallback (bad or missing
    input) rather than from the supplied data.
    """

    value: T
    defaulted: bool = False


@dataclass(frozen=True)
class DateRange:
    start: dt.date
    finish: dt.date


@dataclass(frozen=True)
class PhaseAggregate:
    start: Optional[dt.date]
    finish: Optional[dt.date]
    progress_percentage: int


@dataclass
class Task:
    """Serializable representation of a single schedule task."""

    id: TaskId
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    parent_task_id: Optional[TaskId] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    estimated_days: float = 1.0
    dependency: Optional[TaskId] = None
    dependency_type: DependencyType = DependencyType.FS
    lag_time_days: int = 0
    progress_percentage: int = 0
    work_effort: Optional[str] = None
    template_phase_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_phase(self) -> bool:
        """A task without a parent is a top-level phase."""
        return self.parent_task_id is None

    @property
    def is_new(self) -> bool:
        return isinstance(self.id, TemporaryId)

    def has_schedule(self) -> bool:
        """Return True when both start and end dates are defined."""
        return self.start_date is not None and self.end_date is not None

    def to_record(self) -> Dict[str, Any]:
        """Flat camelCase record used at the persistence boundary."""
        record: Dict[str, Any] = dict(self.extra)
        record.update(
            {
                "id": str(self.id),
                "isNew": self.is_new,
                "name": self.name,
                "description": self.description,
                "status": self.status.value,
                "priority": self.priority.value,
                "parentTaskId": _str_or_none(self.parent_task_id),
                "startDate": _iso_or_none(self.start_date),
                "endDate": _iso_or_none(self.end_date),
                "estimatedDays": self.estimated_days,
                "dependency": _str_or_none(self.dependency),
                "dependencyType": self.dependency_type.value,
                "lagTimeDays": self.lag_time_days,
                "progressPercentage": self.progress_percentage,
                "workEffort": self.work_effort,
                "templatePhaseId": self.template_phase_id,
            }
        )
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Task":
        """Build a task from a backend record, tolerating missing fields."""
        # dates imports this module at load time.
        from .dates import hours_to_days, parse_date, parse_duration, parse_lag

        task_id = parse_task_id(record.get("id"))
        if task_id is None:
            raise ValueError("task record has no id")

        if record.get("estimatedDays") not in (None, ""):
            estimated_days = parse_duration(record.get("estimatedDays")).value
        elif record.get("estimatedHours") not in (None, ""):
            estimated_days = parse_duration(hours_to_days(record.get("estimatedHours"))).value
        else:
            estimated_days = 1.0

        progress = record.get("progressPercentage", record.get("progress", 0))
        try:
            progress_value = max(0, min(100, int(round(float(progress)))))
        except (TypeError, ValueError):
            progress_value = 0

        known = {
            "id", "isNew", "name", "description", "status", "priority", "parentTaskId",
            "startDate", "endDate", "estimatedDays", "estimatedHours", "dependency",
            "dependencyType", "lagTimeDays", "progressPercentage", "progress",
            "workEffort", "templatePhaseId",
        }
        return cls(
            id=task_id,
            name=str(record.get("name") or ""),
            description=str(record.get("description") or ""),
            status=TaskStatus.parse(record.get("status")),
            priority=TaskPriority.parse(record.get("priority")),
            parent_task_id=parse_task_id(record.get("parentTaskId")),
            start_date=parse_date(record.get("startDate")),
            end_date=parse_date(record.get("endDate")),
            estimated_days=estimated_days,
            dependency=parse_task_id(record.get("dependency")),
            dependency_type=DependencyType.parse(record.get("dependencyType")) or DependencyType.FS,
            lag_time_days=parse_lag(record.get("lagTimeDays")).value,
            progress_percentage=progress_value,
            work_effort=record.get("workEffort") or None,
            template_phase_id=record.get("templatePhaseId") or None,
            extra={k: v for k, v in record.items() if k not in known},
        )


def _str_or_none(value: Optional[TaskId]) -> Optional[str]:
    return None if value is None else str(value)


def _iso_or_none(value: Optional[dt.date]) -> Optional[str]:
    return None if value is None else value.isoformat()
