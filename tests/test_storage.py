import datetime as dt
from pathlib import Path

import pytest

from gantt_scheduler.coordinator import ScheduleEditor
from gantt_scheduler.errors import InvalidScheduleFile
from gantt_scheduler.models import DependencyType, PersistedId, Task, TaskStatus
from gantt_scheduler.storage import CsvScheduleBackend, load_schedule, save_schedule
from gantt_scheduler.store import TaskStore
from gantt_scheduler.sync import SchedulePersister


def test_save_and_load_roundtrip(tmp_path: Path, phased_store: TaskStore) -> None:
    path = tmp_path / "sample.csv"
    tasks = list(phased_store)

    save_schedule(path, "Launch", tasks)
    name, loaded = load_schedule(path)

    assert name == "Launch"
    assert loaded == tasks


def test_save_writes_blank_cells_for_missing_values(tmp_path: Path) -> None:
    path = tmp_path / "draft.csv"
    tasks = [
        Task(id=PersistedId("p"), name="Notes"),
        Task(
            id=PersistedId("s"),
            name="Rough start",
            parent_task_id=PersistedId("p"),
            start_date=dt.date(2024, 1, 2),
            estimated_days=2.5,
            dependency_type=DependencyType.SS,
        ),
    ]

    save_schedule(path, "Draft", tasks)

    text = path.read_text().splitlines()
    assert text[0] == "#schedule,Draft"
    assert text[1].startswith("id,name,description,status,priority,parentTaskId")
    assert text[2] == "p,Notes,,pending,medium,,,,1,,FS,0,0,,"
    assert text[3] == "s,Rough start,,pending,medium,p,2024-01-02,,2.5,,SS,0,0,,"


def test_load_rejects_files_without_marker(tmp_path: Path) -> None:
    path = tmp_path / "other.csv"
    path.write_text("name,start,end\nA,1,2\n", encoding="utf-8")

    with pytest.raises(InvalidScheduleFile):
        load_schedule(path)


def test_load_tolerates_legacy_values(tmp_path: Path) -> None:
    path = tmp_path / "legacy.csv"
    save_schedule(path, "Legacy", [Task(id=PersistedId("x"), name="X")])
    content = path.read_text(encoding="utf-8").replace("pending", "not-started").replace(",FS,", ",QQ,")
    path.write_text(content, encoding="utf-8")

    _name, (task,) = load_schedule(path)

    assert task.status is TaskStatus.PENDING
    assert task.dependency_type is DependencyType.FS


def test_csv_backend_saves_new_schedule(tmp_path: Path) -> None:
    path = tmp_path / "saved.csv"
    editor = ScheduleEditor(today=dt.date(2024, 1, 8))
    phase_id = editor.store.next_temporary_id()
    editor.add_task(Task(id=phase_id, name="Phase"))
    child_id = editor.store.next_temporary_id()
    editor.add_task(Task(id=child_id, name="Child", parent_task_id=phase_id, estimated_days=2))
    editor.change_start(child_id, "2024-01-08")
    backend = CsvScheduleBackend(path, "Plan")

    report = SchedulePersister(backend).save(editor)
    written = backend.flush()

    assert written == 2
    name, loaded = load_schedule(path)
    assert name == "Plan"
    store = TaskStore.from_tasks(loaded)
    phase = report.id_map[phase_id]
    assert [task.name for task in store.children_of(phase)] == ["Child"]
    assert store.get(phase).end_date == dt.date(2024, 1, 9)
