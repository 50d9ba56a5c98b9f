import datetime as dt
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtWidgets import QApplication  # noqa: E402

from gantt_scheduler.coordinator import ScheduleEditor  # noqa: E402
from gantt_scheduler.models import PersistedId, Task  # noqa: E402
from gantt_scheduler.store import TaskStore  # noqa: E402

TODAY = dt.date(2024, 1, 8)


@pytest.fixture(scope="session")
def qapp():
    """Provide a shared QApplication for tests that instantiate widgets."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def phased_store() -> TaskStore:
    """One phase with a three-task FS chain A -> B -> C."""
    return TaskStore.from_tasks(
        [
            Task(id=PersistedId("p1"), name="Build"),
            Task(
                id=PersistedId("a"),
                name="A",
                parent_task_id=PersistedId("p1"),
                start_date=dt.date(2024, 1, 8),
                end_date=dt.date(2024, 1, 10),
                estimated_days=3,
            ),
            Task(
                id=PersistedId("b"),
                name="B",
                parent_task_id=PersistedId("p1"),
                start_date=dt.date(2024, 1, 11),
                end_date=dt.date(2024, 1, 12),
                estimated_days=2,
                dependency=PersistedId("a"),
            ),
            Task(
                id=PersistedId("c"),
                name="C",
                parent_task_id=PersistedId("p1"),
                start_date=dt.date(2024, 1, 13),
                end_date=dt.date(2024, 1, 13),
                estimated_days=1,
                dependency=PersistedId("b"),
            ),
        ]
    )


@pytest.fixture
def editor(phased_store: TaskStore) -> ScheduleEditor:
    return ScheduleEditor(phased_store, today=TODAY)
