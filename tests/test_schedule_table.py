import datetime as dt
import json
from pathlib import Path

from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import QApplication

from gantt_scheduler.app import (
    COL_DURATION,
    COL_NAME,
    COL_PREDECESSOR,
    COL_START,
    COL_TYPE,
    MainWindow,
    ScheduleTableWidget,
)
from gantt_scheduler.config import Settings
from gantt_scheduler.coordinator import ScheduleEditor
from gantt_scheduler.models import PersistedId

A, B, C, P1 = PersistedId("a"), PersistedId("b"), PersistedId("c"), PersistedId("p1")


def _text(table: ScheduleTableWidget, task_id, column: int) -> str:
    return table.item(table.row_of(task_id), column).text()


def test_rows_follow_phase_order(qapp: QApplication, editor: ScheduleEditor) -> None:
    table = ScheduleTableWidget(editor)

    assert table.row_ids == [P1, A, B, C]
    assert _text(table, P1, COL_NAME) == "Build"
    assert _text(table, A, COL_NAME) == "    A"
    assert _text(table, B, COL_PREDECESSOR) == "A"
    assert _text(table, B, COL_TYPE) == "FS"
    assert table.days[0] == dt.date(2024, 1, 8)


def test_duration_edit_reschedules_dependent(qapp: QApplication, editor: ScheduleEditor) -> None:
    table = ScheduleTableWidget(editor)
    updates = []
    table.tasks_updated.connect(updates.append)

    table.item(table.row_of(A), COL_DURATION).setText("5")

    assert _text(table, B, COL_START) == "2024-01-13"
    assert editor.effective(B).start_date == dt.date(2024, 1, 13)
    assert updates


def test_predecessor_accepts_task_name(qapp: QApplication, editor: ScheduleEditor) -> None:
    table = ScheduleTableWidget(editor)

    table.item(table.row_of(C), COL_PREDECESSOR).setText("a")

    assert editor.effective(C).dependency == A
    assert _text(table, C, COL_START) == "2024-01-11"


def test_timeline_cells_show_bars(qapp: QApplication, editor: ScheduleEditor) -> None:
    table = ScheduleTableWidget(editor)
    first_day = table.timeline_start_col

    assert table.item(table.row_of(A), first_day).background().color() == QColor("#1976d2")
    assert table.item(table.row_of(C), first_day).background().color() == QColor("white")


def test_delete_and_undo_restore_task(qapp: QApplication, editor: ScheduleEditor) -> None:
    table = ScheduleTableWidget(editor)

    table.delete_task(C)
    assert C not in table.row_ids

    assert table.undo_last_change()
    assert table.row_ids == [P1, A, B, C]
    assert not table.undo_last_change()


def test_summary_counts_active_subtasks(qapp: QApplication) -> None:
    window = MainWindow(Settings())
    phase_id = window.table.add_task("Phase")
    window.table.add_task("Work", parent_id=phase_id)

    col = window.summary.timeline_start_col
    assert window.summary.item(0, col).text() == "1"
    assert window.windowTitle().endswith("*")
    assert len(window.table.row_ids) == 2


def test_template_file_adds_phases_once(qapp: QApplication, tmp_path: Path) -> None:
    path = tmp_path / "template.json"
    path.write_text(
        json.dumps([{"id": "discovery", "name": "Discovery", "tasks": [{"name": "Interviews", "estimatedHours": 12}]}]),
        encoding="utf-8",
    )
    window = MainWindow(Settings(hours_per_day=6))

    added = window.import_template_file(path)
    again = window.import_template_file(path)

    assert len(added) == 1
    assert again == []
    assert [window.table.item(row, COL_NAME).text() for row in range(window.table.rowCount())] == [
        "Discovery",
        "    Interviews",
    ]
    assert window.table.editor.store.children_of(added[0])[0].estimated_days == 2.0
