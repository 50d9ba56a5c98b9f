"""Main PyQt application entry point."""
from __future__ import annotations

import datetime as dt
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from PyQt6.QtCore import Qt, QPoint, pyqtSignal, QItemSelectionModel
from PyQt6.QtGui import QAction, QCloseEvent, QColor, QFont, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QMainWindow,
    QMenu,
    QMessageBox,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
    QAbstractItemView,
    QHeaderView,
)

from .config import Settings, load_settings
from .coordinator import ChangeResult, ScheduleEditor
from .errors import ScheduleError, ScheduleSaveError
from .exporters import export_as_csv, export_as_pdf, timeline_days
from .importers import (
    import_ai_breakdown,
    import_template_phases,
    suggestions_from_payload,
    template_phases_from_payload,
)
from .logging_setup import setup_logging
from .models import Task, TaskId, parse_task_id
from .storage import CsvScheduleBackend, load_schedule
from .store import TaskStore
from .sync import SchedulePersister

logger = logging.getLogger(__name__)

TASK_HEADERS = ["Task", "Predecessor", "Type", "Lag", "Start", "Finish", "Duration", "Progress"]
COL_NAME, COL_PREDECESSOR, COL_TYPE, COL_LAG, COL_START, COL_FINISH, COL_DURATION, COL_PROGRESS = range(8)
_UNDO_STACK_LIMIT = 20
_DRAG_HANDLE_TOLERANCE = 6
_SUBTASK_INDENT = "    "
_TASK_COLOR = QColor("#1976d2")
_PHASE_COLOR = QColor("#8d6e63")


@dataclass(slots=True)
class DragState:
    row: int
    edge: str  # "start" or "end"


class SummaryRowWidget(QTableWidget):
    """Displays how many subtasks are active on each day."""

    def __init__(self, day_count: int, parent: Optional[QWidget] = None) -> None:
        super().__init__(1, 0, parent)
        self.timeline_start_col = len(TASK_HEADERS)
        self.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.verticalHeader().setVisible(False)
        self.horizontalHeader().setVisible(False)
        self.setMaximumHeight(48)
        self.set_day_count(day_count)

    def set_day_count(self, day_count: int) -> None:
        self.setColumnCount(self.timeline_start_col + day_count)
        self._init_cells()

    def _init_cells(self) -> None:
        self.blockSignals(True)
        for col in range(self.columnCount()):
            item = self.item(0, col)
            if item is None:
                item = QTableWidgetItem()
                self.setItem(0, col, item)
            item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
            if col < self.timeline_start_col:
                item.setText("Active" if col == 0 else "")
            else:
                item.setText("0")
        self.blockSignals(False)

    def update_counts(self, counts: List[int]) -> None:
        for offset, value in enumerate(counts):
            col = self.timeline_start_col + offset
            if col >= self.columnCount():
                break
            item = self.item(0, col)
            if item is None:
                item = QTableWidgetItem()
                self.setItem(0, col, item)
            item.setText(str(value))
            item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)


class ScheduleTableWidget(QTableWidget):
    """Schedule grid with an embedded day-by-day timeline.

    Every edit is handed to the `ScheduleEditor`; the grid only ever shows
    the editor's current snapshot. `tasks_updated` fires after each redraw.
    """

    tasks_updated = pyqtSignal(list)
    change_applied = pyqtSignal(object)
    undo_available = pyqtSignal(bool)
    column_widths_updated = pyqtSignal()

    def __init__(self, editor: ScheduleEditor, parent: Optional[QWidget] = None) -> None:
        super().__init__(0, len(TASK_HEADERS), parent)
        self.editor = editor
        self.timeline_start_col = len(TASK_HEADERS)
        self.days: List[dt.date] = []
        self._row_ids: List[TaskId] = []
        self._drag_state: Optional[DragState] = None
        self._block_cell = False
        self._undo_stack: List[List[Task]] = []
        self._suppress_selection_sync = False
        self._setup_table()
        self.refresh()
        self._emit_undo_available()

    def _setup_table(self) -> None:
        self.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.setEditTriggers(
            QAbstractItemView.EditTrigger.DoubleClicked
            | QAbstractItemView.EditTrigger.EditKeyPressed
            | QAbstractItemView.EditTrigger.AnyKeyPressed
        )
        self.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.customContextMenuRequested.connect(self._show_context_menu)
        self.cellChanged.connect(self._handle_cell_changed)
        self.verticalHeader().setVisible(False)
        self.setMouseTracking(True)
        self.itemSelectionChanged.connect(self._limit_selection_to_text_columns)

    def set_editor(self, editor: ScheduleEditor) -> None:
        self.editor = editor
        self.reset_undo_stack()
        self.refresh()

    @property
    def row_ids(self) -> List[TaskId]:
        return list(self._row_ids)

    def row_of(self, task_id: TaskId) -> int:
        try:
            return self._row_ids.index(task_id)
        except ValueError:
            return -1

    def selected_task_id(self) -> Optional[TaskId]:
        row = self.currentRow()
        if 0 <= row < len(self._row_ids):
            return self._row_ids[row]
        return None

    # --- Drawing -----------------------------------------------------------

    def refresh(self) -> None:
        """Redraw from the editor, updating cells in place where possible."""
        tasks = self.editor.snapshot()
        ids = [task.id for task in tasks]
        days = timeline_days(tasks)
        self._block_cell = True
        try:
            if days != self.days:
                self.days = days
                self._configure_columns()
            if ids != self._row_ids:
                self._rebuild_rows(ids)
            names = {task.id: task.name for task in tasks}
            for row, task in enumerate(tasks):
                self._write_row(row, task, names)
                self._recolor_row(row, task)
        finally:
            self._block_cell = False
        self.tasks_updated.emit(tasks)

    def _configure_columns(self) -> None:
        labels = TASK_HEADERS + [day.strftime("%d\n%b") if day.day == 1 else str(day.day) for day in self.days]
        self.setColumnCount(len(labels))
        self.setHorizontalHeaderLabels(labels)
        for row in range(self.rowCount()):
            for col in range(self.timeline_start_col, self.columnCount()):
                if self.item(row, col) is None:
                    self.setItem(row, col, self._make_cell(editable=False))
        self._configure_column_widths()

    def _configure_column_widths(self) -> None:
        header = self.horizontalHeader()
        fm = self.fontMetrics()
        name_width = max(fm.horizontalAdvance("M" * 24), 220)
        date_width = max(fm.horizontalAdvance("0000-00-00") + 16, 90)
        numeric_width = max(fm.horizontalAdvance("0000") + 12, 48)
        viz_width = max(fm.horizontalAdvance("00") + 8, 26)

        target_widths = {
            COL_NAME: name_width,
            COL_PREDECESSOR: name_width // 2,
            COL_START: date_width,
            COL_FINISH: date_width,
        }
        for col in range(self.columnCount()):
            header.setSectionResizeMode(col, QHeaderView.ResizeMode.Fixed)
            width = target_widths.get(col, viz_width if col >= self.timeline_start_col else numeric_width)
            self.setColumnWidth(col, width)
        self.column_widths_updated.emit()

    def _make_cell(self, *, editable: bool = True) -> QTableWidgetItem:
        """Create a cell with the proper flags for timeline vs text columns."""
        item = QTableWidgetItem("")
        if not editable:
            item.setFlags(Qt.ItemFlag.ItemIsSelectable | Qt.ItemFlag.ItemIsEnabled)
        return item

    def _rebuild_rows(self, ids: List[TaskId]) -> None:
        self.setRowCount(0)
        self.setRowCount(len(ids))
        for row in range(len(ids)):
            for col in range(self.columnCount()):
                editable = COL_NAME < col < self.timeline_start_col
                self.setItem(row, col, self._make_cell(editable=editable))
        self._row_ids = list(ids)

    def _write_row(self, row: int, task: Task, names: Dict[TaskId, str]) -> None:
        name_item = self.item(row, COL_NAME)
        font = QFont(name_item.font())
        font.setBold(task.is_phase)
        name_item.setFont(font)
        self._write_text(row, COL_NAME, task.name if task.is_phase else _SUBTASK_INDENT + task.name)
        predecessor = ""
        if task.dependency is not None:
            predecessor = names.get(task.dependency, str(task.dependency))
        self._write_text(row, COL_PREDECESSOR, predecessor)
        self._write_text(row, COL_TYPE, task.dependency_type.value if task.dependency is not None else "")
        self._write_text(row, COL_LAG, str(task.lag_time_days) if task.dependency is not None else "")
        self._write_text(row, COL_START, task.start_date.isoformat() if task.start_date else "")
        self._write_text(row, COL_FINISH, task.end_date.isoformat() if task.end_date else "")
        self._write_text(row, COL_DURATION, f"{task.estimated_days:g}")
        self._write_text(row, COL_PROGRESS, f"{task.progress_percentage}%")

    def _write_text(self, row: int, col: int, value: str) -> None:
        item = self.item(row, col)
        if item is None:
            item = self._make_cell()
            self.setItem(row, col, item)
        if item.text() == value:
            return
        item.setText(value)

    def _recolor_row(self, row: int, task: Task) -> None:
        """Refresh the miniature bar visualization for a single row."""
        color = _PHASE_COLOR if task.is_phase else _TASK_COLOR
        for offset, day in enumerate(self.days):
            col = self.timeline_start_col + offset
            item = self.item(row, col)
            if item is None:
                item = self._make_cell(editable=False)
                self.setItem(row, col, item)
            active = task.has_schedule() and task.start_date <= day <= task.end_date
            item.setBackground(color if active else QColor("white"))

    # --- Editing -----------------------------------------------------------

    def _handle_cell_changed(self, row: int, column: int) -> None:
        if self._block_cell:
            return
        if row >= len(self._row_ids) or column >= self.timeline_start_col:
            return
        item = self.item(row, column)
        text = item.text().strip() if item else ""
        result = self.apply_edit(self._row_ids[row], column, text)
        if result is not None:
            self.change_applied.emit(result)
        self.refresh()

    def apply_edit(self, task_id: TaskId, column: int, text: str) -> Optional[ChangeResult]:
        """Route a text edit in one of the grid columns to the editor."""
        editor = self.editor
        if column == COL_PREDECESSOR:
            return editor.change_dependency(task_id, self._resolve_predecessor(text))
        if column == COL_TYPE:
            return editor.change_dependency_type(task_id, text)
        if column == COL_LAG:
            return editor.change_lag(task_id, text)
        if column == COL_START:
            return editor.change_start(task_id, text)
        if column == COL_FINISH:
            return editor.change_finish(task_id, text)
        if column == COL_DURATION:
            return editor.change_duration(task_id, text)
        if column == COL_PROGRESS:
            return editor.change_progress(task_id, text.rstrip("%"))
        return None

    def _resolve_predecessor(self, text: str) -> Optional[TaskId]:
        """Accept a task name (case-insensitive) or a task id."""
        if not text:
            return None
        lowered = text.lower()
        for task in self.editor.snapshot():
            if task.name.strip().lower() == lowered:
                return task.id
        return parse_task_id(text)

    # --- Row actions -------------------------------------------------------

    def _show_context_menu(self, position: QPoint) -> None:
        """Provide quick row actions (add/delete/undo)."""
        index = self.indexAt(position)
        if not index.isValid():
            return
        task_id = self._row_ids[index.row()]
        menu = QMenu(self)
        add_action = menu.addAction("Add subtask")
        delete_action = menu.addAction("Delete task")
        menu.addSeparator()
        undo_action = menu.addAction("Undo delete")
        undo_action.setEnabled(bool(self._undo_stack))
        action = menu.exec(self.viewport().mapToGlobal(position))
        if action == add_action:
            name, ok = QInputDialog.getText(self, "Add subtask", "Task name")
            if ok and name.strip():
                self.add_task(name.strip(), parent_id=task_id)
        elif action == delete_action:
            self.delete_task(task_id)
        elif action == undo_action:
            self.undo_last_change()

    def add_task(self, name: str, *, parent_id: Optional[TaskId] = None, estimated_days: float = 1.0) -> TaskId:
        parent = self.editor.effective(parent_id)
        if parent is not None and not parent.is_phase:
            parent_id = parent.parent_task_id
        task_id = self.editor.store.next_temporary_id()
        self.editor.add_task(Task(id=task_id, name=name, parent_task_id=parent_id, estimated_days=estimated_days))
        self.editor.change_start(task_id, self.editor.today)
        self.refresh()
        return task_id

    def delete_task(self, task_id: TaskId) -> None:
        snapshot = [task for task in self.editor.snapshot() if task.id == task_id or task.parent_task_id == task_id]
        removed = self.editor.remove_task(task_id)
        if not removed:
            return
        self._push_undo_state(snapshot)
        self.refresh()

    def reset_undo_stack(self) -> None:
        """Drop all undo history (used after opening a new schedule)."""
        self._undo_stack.clear()
        self._emit_undo_available()

    def undo_last_change(self) -> bool:
        if not self._undo_stack:
            return False
        restored = self._undo_stack.pop()
        for task in sorted(restored, key=lambda t: not t.is_phase):
            self.editor.add_task(task)
        self._emit_undo_available()
        self.refresh()
        return True

    def _push_undo_state(self, tasks: List[Task]) -> None:
        """Persist the removed tasks and trim the fixed-size undo buffer."""
        self._undo_stack.append(tasks)
        if len(self._undo_stack) > _UNDO_STACK_LIMIT:
            self._undo_stack.pop(0)
        self._emit_undo_available()

    def _emit_undo_available(self) -> None:
        """Notify any listeners (menu items) that undo availability changed."""
        self.undo_available.emit(bool(self._undo_stack))

    # Drag handling -----------------------------------------------------
    def mousePressEvent(self, event):  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton:
            row = self.rowAt(int(event.position().y()))
            col = self.columnAt(int(event.position().x()))
            if 0 <= row < len(self._row_ids) and col >= self.timeline_start_col:
                task = self.editor.effective(self._row_ids[row])
                if task is not None and task.has_schedule() and not self.editor.store.children_of(task.id):
                    day = self.days[col - self.timeline_start_col]
                    pointer_x = int(event.position().x())
                    # Detect drags even if users grab near, but not exactly on, the edge.
                    start_edge = self._day_left_edge(task.start_date)
                    end_edge = self._day_right_edge(task.end_date)
                    if abs(pointer_x - start_edge) <= _DRAG_HANDLE_TOLERANCE or day == task.start_date:
                        self._drag_state = DragState(row=row, edge="start")
                    elif abs(pointer_x - end_edge) <= _DRAG_HANDLE_TOLERANCE or day == task.end_date:
                        self._drag_state = DragState(row=row, edge="end")
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):  # type: ignore[override]
        if self._drag_state:
            col = self.columnAt(int(event.position().x()))
            if col >= self.timeline_start_col:
                day = self.days[col - self.timeline_start_col]
                task_id = self._row_ids[self._drag_state.row]
                task = self.editor.effective(task_id)
                if task is not None and self._drag_state.edge == "start" and day != task.start_date:
                    self.change_applied.emit(self.editor.change_start(task_id, day))
                    self.refresh()
                elif task is not None and self._drag_state.edge == "end" and day != task.end_date:
                    if task.start_date is None or day >= task.start_date:
                        self.change_applied.emit(self.editor.change_finish(task_id, day))
                        self.refresh()
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):  # type: ignore[override]
        self._drag_state = None
        super().mouseReleaseEvent(event)

    def _day_left_edge(self, day: Optional[dt.date]) -> int:
        """Translate a day into pixel coordinates for drag math."""
        if day is None or day not in self.days:
            return 0
        col = self.timeline_start_col + self.days.index(day)
        return max(0, self.columnViewportPosition(col))

    def _day_right_edge(self, day: Optional[dt.date]) -> int:
        """Same as `_day_left_edge`, but returns the right-hand boundary."""
        if day is None or day not in self.days:
            return 0
        col = self.timeline_start_col + self.days.index(day)
        return max(0, self.columnViewportPosition(col) + self.columnWidth(col))

    def _limit_selection_to_text_columns(self) -> None:
        """Prevent the timeline portion from highlighting so bars stay visible."""
        if self._suppress_selection_sync:
            return
        selection_model = self.selectionModel()
        if selection_model is None:
            return
        indexes = selection_model.selectedIndexes()
        if not indexes:
            return
        self._suppress_selection_sync = True
        for index in indexes:
            if index.column() >= self.timeline_start_col:
                selection_model.select(index, QItemSelectionModel.SelectionFlag.Deselect)
        self._suppress_selection_sync = False


class MainWindow(QMainWindow):
    """Primary window with menus and central widgets."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.settings = settings or load_settings()
        self.setWindowTitle("Gantt Scheduler")
        self.current_path: Optional[Path] = None
        self.schedule_name = "Untitled schedule"
        self.persister: Optional[SchedulePersister] = None
        self.table = ScheduleTableWidget(self._new_editor(TaskStore()))
        self.summary = SummaryRowWidget(len(self.table.days))
        self.undo_action: QAction | None = None
        # Wire up the table so the summary row and menu items stay in sync.
        self.table.tasks_updated.connect(self._update_summary)
        self.table.change_applied.connect(self._report_change)
        self.table.undo_available.connect(self._handle_undo_available)
        self.table.column_widths_updated.connect(self._mirror_all_column_widths)
        self._update_summary(self.table.editor.snapshot())
        self._build_layout()
        self._build_menu()
        self.resize(self.settings.window_width, self.settings.window_height)

    def _new_editor(self, store: TaskStore) -> ScheduleEditor:
        return ScheduleEditor(store, policy=self.settings.propagation_policy)

    def _build_layout(self) -> None:
        """Stack the editable table and the summary density row."""
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.addWidget(self.table)
        layout.addWidget(self.summary)
        self.setCentralWidget(container)

    def _build_menu(self) -> None:
        """Create File/Edit menus along with shortcuts."""
        menu = self.menuBar()
        file_menu = menu.addMenu("File")
        self._add_action(file_menu, "New", self.action_new, QKeySequence.StandardKey.New)
        self._add_action(file_menu, "Open", self.action_open, QKeySequence.StandardKey.Open)
        self._add_action(file_menu, "Save", self.action_save, QKeySequence.StandardKey.Save)
        self._add_action(file_menu, "Export", self.action_export)
        self._add_action(file_menu, "Import AI breakdown...", self.action_import_breakdown)
        self._add_action(file_menu, "Import template...", self.action_import_template)
        file_menu.addSeparator()
        self._add_action(file_menu, "Quit", self.close, QKeySequence.StandardKey.Quit)

        edit_menu = menu.addMenu("Edit")
        undo_action = self._add_action(edit_menu, "Undo delete", self._handle_undo_request, "Ctrl+Z")
        undo_action.setEnabled(False)
        self.undo_action = undo_action
        edit_menu.addSeparator()
        self._add_action(edit_menu, "Add phase...", self.action_add_phase)
        self._add_action(edit_menu, "Add subtask...", self.action_add_subtask)
        self._add_action(edit_menu, "Delete task", self.action_delete_task)
        edit_menu.addSeparator()
        self._add_action(edit_menu, "Recalculate all", self.action_recalculate)
        self._add_action(edit_menu, "Discard changes", self.action_discard)
        self._add_action(edit_menu, "Clear schedule", self.action_clear)

    def _add_action(self, menu, title, slot, shortcut=None) -> QAction:
        action = QAction(title, self)
        if shortcut is not None:
            action.setShortcut(shortcut)
        action.triggered.connect(slot)
        menu.addAction(action)
        return action

    def _update_summary(self, tasks: List[Task]) -> None:
        """Count active subtasks per day and mirror widths."""
        days = self.table.days
        counts = [0] * len(days)
        for task in tasks:
            if task.is_phase or not task.has_schedule():
                continue
            for idx, day in enumerate(days):
                if task.start_date <= day <= task.end_date:
                    counts[idx] += 1
        self.summary.set_day_count(len(days))
        self._mirror_all_column_widths()
        self.summary.update_counts(counts)
        dirty = "*" if self.table.editor.has_unsaved_changes else ""
        self.setWindowTitle(f"Gantt Scheduler - {self.schedule_name}{dirty}")

    def _report_change(self, result: ChangeResult) -> None:
        if not result.applied:
            self.statusBar().showMessage(f"Edit ignored: {result.reason}", 4000)
        elif result.recalculated:
            self.statusBar().showMessage(f"Rescheduled {len(result.recalculated)} dependent task(s)", 3000)
        elif result.defaulted:
            self.statusBar().showMessage("Invalid value replaced with a default", 3000)

    # Menu actions ------------------------------------------------------
    def action_new(self) -> None:
        """Reset to an empty schedule."""
        if not self._confirm_discard():
            return
        self.table.set_editor(self._new_editor(TaskStore()))
        self.current_path = None
        self.persister = None
        self.schedule_name = "Untitled schedule"
        self.statusBar().showMessage("Started new schedule", 3000)

    def action_open(self) -> None:
        """Load a saved CSV schedule into the grid."""
        if not self._confirm_discard():
            return
        path, _ = QFileDialog.getOpenFileName(self, "Open schedule", filter="CSV Files (*.csv)")
        if not path:
            return
        try:
            name, tasks = load_schedule(path)
        except (OSError, ScheduleError) as exc:  # pragma: no cover - interactive guard
            QMessageBox.critical(self, "Open failed", str(exc))
            return
        self.schedule_name = name or Path(path).stem
        self.current_path = Path(path)
        self.persister = None
        self.table.set_editor(self._new_editor(TaskStore.from_tasks(tasks)))
        self.statusBar().showMessage(f"Loaded schedule from {path}", 3000)

    def action_save(self) -> None:
        """Commit pending edits and write the schedule to CSV."""
        if not self.current_path:
            path, _ = QFileDialog.getSaveFileName(
                self,
                "Save schedule",
                filter="CSV Files (*.csv)",
                initialFilter="CSV Files (*.csv)",
            )
            if not path:
                return
            self.current_path = Path(path)
            self.persister = None
        backend = CsvScheduleBackend(self.current_path, self.schedule_name)
        if self.persister is None or self.persister.backend.path != self.current_path:
            self.persister = SchedulePersister(backend)
        else:
            self.persister.backend = backend
        try:
            report = self.persister.save(self.table.editor)
            backend.flush()
        except (OSError, ScheduleSaveError) as exc:  # pragma: no cover - interactive guard
            logger.error("Save to %s failed: %s", self.current_path, exc)
            QMessageBox.critical(self, "Save failed", f"{exc}\nYour edits are still open; try again.")
            return
        self.table.refresh()
        self.statusBar().showMessage(f"Saved {report.total} task(s) to {self.current_path}", 3000)

    def action_export(self) -> None:
        """Export the richer CSV/PDF formats used for sharing."""
        path, selected_filter = QFileDialog.getSaveFileName(
            self,
            "Export schedule",
            directory=self.settings.export_dir or "",
            filter="CSV Files (*.csv);;PDF Files (*.pdf)",
        )
        if not path:
            return
        tasks = self.table.editor.snapshot()
        if path.lower().endswith(".pdf") or "PDF" in selected_filter:
            include_dates = (
                QMessageBox.question(
                    self,
                    "PDF Columns",
                    "Include Start/Finish columns in the PDF export?",
                    QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                    QMessageBox.StandardButton.Yes,
                )
                == QMessageBox.StandardButton.Yes
            )
            export_as_pdf(path, tasks, include_dates=include_dates)
            self.statusBar().showMessage(f"Exported PDF to {path}", 3000)
        else:
            export_as_csv(path, tasks)
            self.statusBar().showMessage(f"Exported CSV to {path}", 3000)

    def action_import_breakdown(self) -> None:
        """Add tasks from an AI breakdown JSON file."""
        path, _ = QFileDialog.getOpenFileName(self, "Import AI breakdown", filter="JSON Files (*.json)")
        if not path:
            return
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            suggestions, phases = suggestions_from_payload(payload)
        except (OSError, ValueError, TypeError) as exc:  # pragma: no cover - interactive guard
            QMessageBox.critical(self, "Import failed", str(exc))
            return
        created = import_ai_breakdown(self.table.editor, suggestions, phases)
        self.table.refresh()
        self.statusBar().showMessage(f"Imported {len(created)} task(s)", 3000)

    def action_import_template(self) -> None:
        """Add planning template phases that are not in the schedule yet."""
        path, _ = QFileDialog.getOpenFileName(self, "Import template", filter="JSON Files (*.json)")
        if not path:
            return
        try:
            added = self.import_template_file(path)
        except (OSError, ValueError, TypeError) as exc:  # pragma: no cover - interactive guard
            QMessageBox.critical(self, "Import failed", str(exc))
            return
        self.statusBar().showMessage(f"Added {len(added)} template phase(s)", 3000)

    def import_template_file(self, path: Path | str) -> List[TaskId]:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        added = import_template_phases(
            self.table.editor,
            template_phases_from_payload(payload),
            hours_per_day=self.settings.hours_per_day,
        )
        self.table.refresh()
        return added

    def action_add_phase(self) -> None:
        name, ok = QInputDialog.getText(self, "Add phase", "Phase name")
        if ok and name.strip():
            self.table.add_task(name.strip(), estimated_days=self.settings.default_duration_days)

    def action_add_subtask(self) -> None:
        parent_id = self.table.selected_task_id()
        if parent_id is None:
            self.statusBar().showMessage("Select a phase first", 3000)
            return
        name, ok = QInputDialog.getText(self, "Add subtask", "Task name")
        if ok and name.strip():
            self.table.add_task(name.strip(), parent_id=parent_id, estimated_days=self.settings.default_duration_days)

    def action_delete_task(self) -> None:
        task_id = self.table.selected_task_id()
        if task_id is not None:
            self.table.delete_task(task_id)

    def action_recalculate(self) -> None:
        moved = self.table.editor.recalculate_all()
        self.table.refresh()
        self.statusBar().showMessage(f"Recalculated {len(moved)} task(s)", 3000)

    def action_discard(self) -> None:
        self.table.editor.discard()
        self.table.refresh()
        self.statusBar().showMessage("Discarded pending changes", 3000)

    def action_clear(self) -> None:
        answer = QMessageBox.question(
            self, "Clear schedule", "Delete all phases and tasks from this schedule?"
        )
        if answer != QMessageBox.StandardButton.Yes:
            return
        self.table.editor.clear_schedule()
        self.table.reset_undo_stack()
        self.table.refresh()
        self.statusBar().showMessage("Schedule cleared", 3000)

    def _confirm_discard(self) -> bool:
        if not self.table.editor.has_unsaved_changes:
            return True
        answer = QMessageBox.question(self, "Unsaved changes", "Discard unsaved changes?")
        return answer == QMessageBox.StandardButton.Yes

    def _handle_undo_available(self, available: bool) -> None:
        """Keep the Undo delete menu item in step with the history."""
        if self.undo_action is not None:
            self.undo_action.setEnabled(available)

    def _handle_undo_request(self) -> None:
        """Trigger a restore of the most recent deletion."""
        if self.table.undo_last_change():
            self.statusBar().showMessage("Restored last deleted task", 3000)

    def _mirror_all_column_widths(self) -> None:
        """Keep the summary row perfectly aligned with the main table."""
        if self.summary.columnCount() != self.table.columnCount():
            self.summary.set_day_count(len(self.table.days))
        columns = min(self.summary.columnCount(), self.table.columnCount())
        for col in range(columns):
            self.summary.setColumnWidth(col, self.table.columnWidth(col))

    def closeEvent(self, event: QCloseEvent) -> None:  # pragma: no cover - requires UI
        """Ask for confirmation before closing the application."""
        if QMessageBox.question(self, "Quit", "Close Gantt Scheduler?") == QMessageBox.StandardButton.Yes:
            event.accept()
        else:
            event.ignore()


def run() -> None:
    """Entry point used by `python -m gantt_scheduler`."""
    setup_logging()
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    app.exec()


if __name__ == "__main__":
    run()
