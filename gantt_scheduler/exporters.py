"""Export helpers for CSV and PDF."""
from __future__ import annotations

import csv
import datetime as dt
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QColor, QFont, QPageLayout, QPageSize, QPainter, QPen, QPdfWriter

from .dates import derive_duration_from_range
from .models import Task

CSV_HEADERS = ["Task", "Start", "Finish", "Duration"]
CSV_TASK_MARKER = "X"
CSV_PHASE_MARKER = "P"

PDF_TASK_MIN_WIDTH = 160
PDF_TASK_MAX_WIDTH_RATIO = 0.4  # fraction of available width
PDF_TASK_PADDING = 48
PDF_DATE_WIDTH = 120
PDF_SUBTASK_INDENT = 18
PDF_TIMELINE_MIN_COL_WIDTH = 8
PDF_PAGE_MARGIN_RATIO = 0.04
PDF_HEADER_HEIGHT = 40
PDF_ROW_HEIGHT_MIN = 24
PDF_ROW_HEIGHT_MAX = 48
PDF_FONT_SIZE = 9
PDF_ROW_TEXT_BOTTOM_PADDING = 4
PDF_HEADER_TEXT_BOTTOM_PADDING = 2
PDF_TASK_COLOR = QColor("#1976d2")
PDF_PHASE_COLOR = QColor("#8d6e63")


def schedule_span(tasks: Iterable[Task]) -> Optional[Tuple[dt.date, dt.date]]:
    """First start and last finish over all dated tasks."""
    task_list = list(tasks)
    starts = [task.start_date for task in task_list if task.start_date is not None]
    finishes = [task.end_date for task in task_list if task.end_date is not None]
    if not starts or not finishes:
        return None
    return min(starts), max(max(finishes), min(starts))


def timeline_days(tasks: Iterable[Task]) -> List[dt.date]:
    span = schedule_span(tasks)
    if span is None:
        return []
    first, last = span
    return [first + dt.timedelta(days=offset) for offset in range((last - first).days + 1)]


def export_as_csv(path: Path | str, tasks: Iterable[Task]) -> None:
    """Export a rich CSV with one marker column per calendar day."""
    csv_path = Path(path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    task_list = list(tasks)
    days = timeline_days(task_list)
    header = CSV_HEADERS + [day.isoformat() for day in days]
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        for task in task_list:
            row = [
                task.name,
                task.start_date.isoformat() if task.start_date else "",
                task.end_date.isoformat() if task.end_date else "",
                _duration_label(task),
            ]
            markers = []
            for day in days:
                if task.has_schedule() and task.start_date <= day <= task.end_date:
                    markers.append(CSV_PHASE_MARKER if task.is_phase else CSV_TASK_MARKER)
                else:
                    markers.append("")
            writer.writerow(row + markers)


def export_as_pdf(path: Path | str, tasks: Iterable[Task], *, include_dates: bool = True) -> None:
    """Render a formatted view of the schedule grid to PDF."""
    pdf_path = Path(path)
    pdf_path.parent.mkdir(parents=True, exist_ok=True)

    writer = QPdfWriter(str(pdf_path))
    writer.setPageSize(QPageSize(QPageSize.PageSizeId.A4))
    writer.setPageOrientation(QPageLayout.Orientation.Landscape)
    writer.setResolution(300)

    task_list = list(tasks)
    painter = QPainter(writer)
    _draw_pdf_table(painter, writer, task_list, include_dates)
    painter.end()


def _duration_label(task: Task) -> str:
    if task.has_schedule():
        return str(derive_duration_from_range(task.start_date, task.end_date).value)
    return f"{task.estimated_days:g}"


def _compute_text_columns(font_metrics, content_rect, tasks: List[Task], include_dates: bool) -> List[tuple[str, int]]:
    """Figure out how wide the Task/Start/Finish columns should be for PDF."""
    longest_task = max(
        (font_metrics.horizontalAdvance(task.name) + (0 if task.is_phase else PDF_SUBTASK_INDENT) for task in tasks),
        default=0,
    )
    proportional_cap = int(content_rect.width() * PDF_TASK_MAX_WIDTH_RATIO)
    desired_width = longest_task + PDF_TASK_PADDING
    name_width = max(PDF_TASK_MIN_WIDTH, min(desired_width, proportional_cap))
    columns = [("Task", name_width)]
    if include_dates:
        columns.extend([("Start", PDF_DATE_WIDTH), ("Finish", PDF_DATE_WIDTH)])
    return columns


def _compute_timeline_layout(content_rect, text_columns, day_count: int):
    """Decide where the timeline columns begin and how wide each day is."""
    text_total_width = sum(width for _, width in text_columns)
    remaining = max(1, content_rect.width() - text_total_width)
    day_count = max(1, day_count)
    avg_col_width = remaining / day_count
    if avg_col_width < PDF_TIMELINE_MIN_COL_WIDTH:
        col_width = PDF_TIMELINE_MIN_COL_WIDTH
        timeline_total_width = col_width * day_count
        timeline_start_x = max(content_rect.left() + text_total_width, content_rect.right() - timeline_total_width)
    else:
        col_width = avg_col_width
        timeline_start_x = content_rect.left() + text_total_width
    return col_width, timeline_start_x


def _compute_row_height(content_rect, tasks: List[Task]):
    """Compute a bounded row height so all tasks fit on the page."""
    rows = max(1, len(tasks))
    available_height = max(PDF_ROW_HEIGHT_MIN, content_rect.height() - PDF_HEADER_HEIGHT)
    return max(PDF_ROW_HEIGHT_MIN, min(PDF_ROW_HEIGHT_MAX, int(available_height / rows)))


def _draw_pdf_table(
    painter: QPainter,
    writer: QPdfWriter,
    tasks: List[Task],
    include_dates: bool,
) -> None:
    page_rect = writer.pageLayout().paintRectPixels(writer.resolution())
    margin = int(page_rect.width() * PDF_PAGE_MARGIN_RATIO)
    content_rect = page_rect.adjusted(margin, margin, -margin, -margin)

    painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
    font = QFont(painter.font())
    font.setPointSize(PDF_FONT_SIZE)
    painter.setFont(font)
    pen = QPen(QColor("#333333"))
    pen.setWidth(1)
    painter.setPen(pen)
    font_metrics = painter.fontMetrics()

    days = timeline_days(tasks)
    text_columns = _compute_text_columns(font_metrics, content_rect, tasks, include_dates)
    col_width, timeline_start_x = _compute_timeline_layout(content_rect, text_columns, len(days))
    row_height = _compute_row_height(content_rect, tasks)
    header_height = PDF_HEADER_HEIGHT

    header_y = content_rect.top()
    column_positions: List[float] = []
    cursor_x = content_rect.left()
    for _, width in text_columns:
        column_positions.append(cursor_x)
        cursor_x += width

    for (title, width), x in zip(text_columns, column_positions):
        rect = QRectF(x, header_y, width, header_height)
        painter.fillRect(rect, QColor("#eceff1"))
        painter.drawRect(rect)
        header_text_rect = rect.adjusted(0, 0, 0, -PDF_HEADER_TEXT_BOTTOM_PADDING)
        painter.drawText(header_text_rect, Qt.AlignmentFlag.AlignCenter, title)

    # Day headers show the day of month; months start on day 1.
    for offset, day in enumerate(days):
        rect = QRectF(timeline_start_x + offset * col_width, header_y, col_width, header_height)
        painter.fillRect(rect, QColor("#e8eaf6") if day.day != 1 else QColor("#c5cae9"))
        painter.drawRect(rect)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, str(day.day))

    current_y = header_y + header_height
    for task in tasks:
        values = [task.name]
        if include_dates:
            values.extend([
                task.start_date.isoformat() if task.start_date else "",
                task.end_date.isoformat() if task.end_date else "",
            ])
        for (_title, width), x, value in zip(text_columns, column_positions, values):
            rect = QRectF(x, current_y, width, row_height)
            painter.drawRect(rect)
            is_name = x == column_positions[0]
            alignment = Qt.AlignmentFlag.AlignVCenter | (
                Qt.AlignmentFlag.AlignLeft if is_name else Qt.AlignmentFlag.AlignCenter
            )
            padding = 6 if is_name else 0
            if is_name and not task.is_phase:
                padding += PDF_SUBTASK_INDENT
            text_rect = rect.adjusted(padding, 0, -6 if is_name else 0, -PDF_ROW_TEXT_BOTTOM_PADDING)
            painter.drawText(text_rect, alignment, value)

        fill_color = PDF_PHASE_COLOR if task.is_phase else PDF_TASK_COLOR
        for offset, day in enumerate(days):
            rect = QRectF(timeline_start_x + offset * col_width, current_y, col_width, row_height)
            painter.drawRect(rect)
            if task.has_schedule() and task.start_date <= day <= task.end_date:
                painter.fillRect(rect.adjusted(1, 1, -1, -1), fill_color)
        current_y += row_height

    if not tasks:
        rect = QRectF(content_rect.left(), current_y, content_rect.width(), row_height)
        painter.drawRect(rect)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, "No tasks defined")
