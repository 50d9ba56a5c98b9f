"""CSV persistence helpers."""
from __future__ import annotations

import csv
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import InvalidScheduleFile
from .models import Task

_SCHEDULE_PREFIX = "#schedule"
_TASK_HEADER = [
    "id",
    "name",
    "description",
    "status",
    "priority",
    "parentTaskId",
    "startDate",
    "endDate",
    "estimatedDays",
    "dependency",
    "dependencyType",
    "lagTimeDays",
    "progressPercentage",
    "workEffort",
    "templatePhaseId",
]


def save_schedule(path: Path | str, name: str, tasks: Iterable[Task]) -> None:
    """Persist the schedule to CSV."""
    save_records(path, name, (task.to_record() for task in tasks))


def save_records(path: Path | str, name: str, records: Iterable[Dict[str, Any]]) -> None:
    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow([_SCHEDULE_PREFIX, name])
        writer.writerow(_TASK_HEADER)
        for record in records:
            writer.writerow([_serialize_optional(record.get(column)) for column in _TASK_HEADER])


def load_schedule(path: Path | str) -> Tuple[str, List[Task]]:
    """Load a schedule name and its flat task list from CSV."""
    csv_path = Path(path)
    with csv_path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle)
        marker = next(reader, None)
        if not marker or marker[0] != _SCHEDULE_PREFIX:
            raise InvalidScheduleFile("Invalid schedule CSV: missing schedule line")
        name = marker[1] if len(marker) > 1 else ""

        header = next(reader, None)
        if header != _TASK_HEADER:
            raise InvalidScheduleFile("Invalid schedule CSV: missing task header")

        tasks: List[Task] = []
        for row in reader:
            if len(row) < len(_TASK_HEADER):
                continue
            record = {column: _parse_optional(value) for column, value in zip(_TASK_HEADER, row)}
            if not record["id"]:
                continue
            tasks.append(Task.from_record(record))

        return name, tasks


class CsvScheduleBackend:
    """Save target writing the whole schedule to one CSV file.

    Records arrive through `create_task`/`update_task` during a save and are
    written out by `flush`. New tasks get short random ids.
    """

    def __init__(self, path: Path | str, name: str = "") -> None:
        self.path = Path(path)
        self.name = name
        self._records: Dict[str, Dict[str, Any]] = {}

    def create_task(self, record: Dict[str, Any]) -> str:
        task_id = uuid.uuid4().hex[:12]
        self._records[task_id] = dict(record, id=task_id)
        return task_id

    def update_task(self, task_id: str, record: Dict[str, Any]) -> None:
        self._records[task_id] = dict(record, id=task_id)

    def flush(self) -> int:
        save_records(self.path, self.name, self._records.values())
        written = len(self._records)
        self._records.clear()
        return written


def _serialize_optional(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_optional(value: Optional[str]) -> Optional[str]:
    text = value.strip() if value is not None else ""
    return text or None
