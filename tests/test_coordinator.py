import datetime as dt

from gantt_scheduler.coordinator import EditState, PropagationPolicy, ScheduleEditor
from gantt_scheduler.models import DependencyType, PersistedId, Task
from gantt_scheduler.store import TaskStore

A, B, C, P1 = PersistedId("a"), PersistedId("b"), PersistedId("c"), PersistedId("p1")


def _dates(editor: ScheduleEditor, task_id):
    task = editor.effective(task_id)
    return task.start_date, task.end_date


def test_duration_change_moves_direct_dependents_only(editor: ScheduleEditor) -> None:
    result = editor.change_duration(A, 5)

    assert result.applied
    assert result.recalculated == (B,)
    assert _dates(editor, A) == (dt.date(2024, 1, 8), dt.date(2024, 1, 12))
    assert _dates(editor, B) == (dt.date(2024, 1, 13), dt.date(2024, 1, 14))
    # C waits for an edit on B under the single hop policy.
    assert _dates(editor, C) == (dt.date(2024, 1, 13), dt.date(2024, 1, 13))
    assert editor.state is EditState.IDLE


def test_duration_change_rolls_up_parent_phase(editor: ScheduleEditor) -> None:
    result = editor.change_duration(A, 5)

    assert result.aggregated == (P1,)
    assert _dates(editor, P1) == (dt.date(2024, 1, 8), dt.date(2024, 1, 14))


def test_only_tasks_naming_the_edited_task_are_recalculated(phased_store: TaskStore) -> None:
    phased_store.add(
        Task(
            id=PersistedId("d"),
            name="D",
            parent_task_id=P1,
            start_date=dt.date(2024, 3, 1),
            end_date=dt.date(2024, 3, 1),
            dependency=C,
        )
    )
    editor = ScheduleEditor(phased_store, today=dt.date(2024, 1, 8))

    result = editor.change_duration(B, 4)

    assert result.recalculated == (C,)
    assert editor.dependents_of(B) == [C]
    assert _dates(editor, PersistedId("d")) == (dt.date(2024, 3, 1), dt.date(2024, 3, 1))


def test_transitive_policy_walks_the_whole_chain(phased_store: TaskStore) -> None:
    editor = ScheduleEditor(phased_store, policy=PropagationPolicy.TRANSITIVE, today=dt.date(2024, 1, 8))

    result = editor.change_duration(A, 5)

    assert result.recalculated == (B, C)
    assert _dates(editor, C) == (dt.date(2024, 1, 15), dt.date(2024, 1, 15))
    assert _dates(editor, P1) == (dt.date(2024, 1, 8), dt.date(2024, 1, 15))


def test_start_change_keeps_duration(editor: ScheduleEditor) -> None:
    result = editor.change_start(A, "2024-01-15")

    assert _dates(editor, A) == (dt.date(2024, 1, 15), dt.date(2024, 1, 17))
    assert result.recalculated == ()
    assert _dates(editor, B) == (dt.date(2024, 1, 11), dt.date(2024, 1, 12))


def test_start_change_cascades_when_transitive(phased_store: TaskStore) -> None:
    editor = ScheduleEditor(phased_store, policy=PropagationPolicy.TRANSITIVE, today=dt.date(2024, 1, 8))

    editor.change_start(A, dt.date(2024, 1, 15))

    assert _dates(editor, B) == (dt.date(2024, 1, 18), dt.date(2024, 1, 19))
    assert _dates(editor, C) == (dt.date(2024, 1, 20), dt.date(2024, 1, 20))


def test_invalid_start_falls_back_to_stored_start(editor: ScheduleEditor) -> None:
    result = editor.change_start(A, "not a date")

    assert result.defaulted
    assert _dates(editor, A) == (dt.date(2024, 1, 8), dt.date(2024, 1, 10))


def test_finish_change_derives_duration(editor: ScheduleEditor) -> None:
    editor.change_finish(A, "2024-01-12")

    assert editor.effective(A).estimated_days == 5.0
    assert _dates(editor, A) == (dt.date(2024, 1, 8), dt.date(2024, 1, 12))


def test_finish_before_start_collapses_to_single_day(editor: ScheduleEditor) -> None:
    result = editor.change_finish(A, "2024-01-01")

    assert result.defaulted
    assert _dates(editor, A) == (dt.date(2024, 1, 8), dt.date(2024, 1, 8))
    assert editor.effective(A).estimated_days == 1.0


def test_new_dependency_places_task_after_predecessor(editor: ScheduleEditor) -> None:
    result = editor.change_dependency(C, "a")

    assert result.applied
    assert editor.effective(C).dependency == A
    assert _dates(editor, C) == (dt.date(2024, 1, 11), dt.date(2024, 1, 11))
    assert editor.dependents_of(A) == [B, C]


def test_dependency_cycle_is_rejected(editor: ScheduleEditor) -> None:
    result = editor.change_dependency(A, "c")

    assert not result.applied
    assert result.reason == "dependency cycle"
    assert editor.effective(A).dependency is None
    assert not editor.has_unsaved_changes


def test_dependency_on_own_phase_is_rejected(editor: ScheduleEditor) -> None:
    result = editor.change_dependency(B, P1)

    assert not result.applied
    assert result.reason == "dependency cycle"
    assert editor.effective(B).dependency == A


def test_dependency_on_phase_fed_by_dependents_is_rejected(phased_store: TaskStore) -> None:
    other = PersistedId("p2")
    phased_store.add(Task(id=other, name="Ship"))
    phased_store.add(Task(id=PersistedId("d"), name="D", parent_task_id=other, dependency=C))
    editor = ScheduleEditor(phased_store, today=dt.date(2024, 1, 8))

    assert not editor.change_dependency(A, other).applied
    assert not editor.change_dependency(C, other).applied
    assert editor.change_dependency(other, A).applied


def test_recalculate_all_is_idempotent_with_loaded_phase_loop(phased_store: TaskStore) -> None:
    phased_store.get(B).dependency = P1
    editor = ScheduleEditor(phased_store, today=dt.date(2024, 1, 8))

    editor.recalculate_all()
    first = editor.snapshot()

    assert editor.recalculate_all() == []
    assert editor.snapshot() == first


def test_self_dependency_is_rejected(editor: ScheduleEditor) -> None:
    assert not editor.change_dependency(A, A).applied


def test_clearing_dependency_keeps_dates(editor: ScheduleEditor) -> None:
    editor.change_dependency(B, None)

    assert editor.effective(B).dependency is None
    assert _dates(editor, B) == (dt.date(2024, 1, 11), dt.date(2024, 1, 12))
    assert editor.dependents_of(A) == []


def test_dangling_dependency_leaves_dates(editor: ScheduleEditor) -> None:
    result = editor.change_dependency(C, "missing")

    assert result.applied
    assert editor.effective(C).dependency == PersistedId("missing")
    assert _dates(editor, C) == (dt.date(2024, 1, 13), dt.date(2024, 1, 13))


def test_dependency_type_change_replaces_dates(editor: ScheduleEditor) -> None:
    editor.change_dependency_type(B, "ss")

    assert editor.effective(B).dependency_type is DependencyType.SS
    assert _dates(editor, B) == (dt.date(2024, 1, 8), dt.date(2024, 1, 9))


def test_unknown_dependency_type_is_ignored(editor: ScheduleEditor) -> None:
    result = editor.change_dependency_type(B, "ZZ")

    assert not result.applied
    assert editor.effective(B).dependency_type is DependencyType.FS
    assert not editor.has_unsaved_changes


def test_lag_shifts_dependent(editor: ScheduleEditor) -> None:
    editor.change_lag(B, "2")

    assert _dates(editor, B) == (dt.date(2024, 1, 13), dt.date(2024, 1, 14))

    result = editor.change_lag(B, "abc")

    assert result.defaulted
    assert editor.effective(B).lag_time_days == 0
    assert _dates(editor, B) == (dt.date(2024, 1, 11), dt.date(2024, 1, 12))


def test_progress_rolls_up_to_phase(editor: ScheduleEditor) -> None:
    editor.change_progress(A, 40)
    result = editor.change_progress(B, "80")

    assert result.aggregated == (P1,)
    assert editor.effective(P1).progress_percentage == 40
    assert editor.change_progress(C, 250).applied
    assert editor.effective(C).progress_percentage == 100


def test_work_effort_is_stored_as_override(editor: ScheduleEditor) -> None:
    editor.change_work_effort(A, " 4 hours/day ")

    assert editor.effective(A).work_effort == "4 hours/day"
    assert editor.store.get(A).work_effort is None


def test_huge_duration_and_lag_do_not_raise(editor: ScheduleEditor) -> None:
    result = editor.change_duration(A, "99999999")

    assert result.applied
    assert result.defaulted
    assert editor.effective(A).estimated_days == 36500.0
    assert editor.effective(A).end_date == dt.date(2024, 1, 8) + dt.timedelta(days=36499)
    assert editor.effective(B).start_date == editor.effective(A).end_date + dt.timedelta(days=1)

    lagged = editor.change_lag(C, 10**12)

    assert lagged.defaulted
    assert editor.effective(C).lag_time_days == 36500


def test_unknown_task_is_rejected(editor: ScheduleEditor) -> None:
    assert not editor.change_start(PersistedId("nope"), "2024-01-01").applied
    assert not editor.change_duration(PersistedId("nope"), 2).applied


def test_recalculate_all_is_idempotent(editor: ScheduleEditor) -> None:
    first_changes = editor.recalculate_all()
    first = editor.snapshot()
    second_changes = editor.recalculate_all()

    assert first_changes == [P1]
    assert second_changes == []
    assert editor.snapshot() == first


def test_recalculate_all_orders_predecessors_first(phased_store: TaskStore) -> None:
    phased_store.get(A).end_date = dt.date(2024, 1, 20)
    editor = ScheduleEditor(phased_store)

    editor.recalculate_all()

    assert _dates(editor, B) == (dt.date(2024, 1, 21), dt.date(2024, 1, 22))
    assert _dates(editor, C) == (dt.date(2024, 1, 23), dt.date(2024, 1, 23))


def test_recalculate_all_skips_existing_cycles() -> None:
    store = TaskStore.from_tasks(
        [
            Task(id=PersistedId("x"), name="X", start_date=dt.date(2024, 1, 1), end_date=dt.date(2024, 1, 1), dependency=PersistedId("y")),
            Task(id=PersistedId("y"), name="Y", start_date=dt.date(2024, 1, 5), end_date=dt.date(2024, 1, 5), dependency=PersistedId("x")),
        ]
    )
    editor = ScheduleEditor(store)

    assert editor.recalculate_all() == []
    assert _dates(editor, PersistedId("x")) == (dt.date(2024, 1, 1), dt.date(2024, 1, 1))


def test_commit_and_discard(editor: ScheduleEditor) -> None:
    editor.change_duration(A, 5)
    assert editor.has_unsaved_changes

    editor.commit()

    assert not editor.has_unsaved_changes
    assert editor.store.get(B).start_date == dt.date(2024, 1, 13)

    editor.change_start(A, "2024-02-01")
    editor.discard()

    assert _dates(editor, A) == (dt.date(2024, 1, 8), dt.date(2024, 1, 12))


def test_remove_subtask_reaggregates_phase(editor: ScheduleEditor) -> None:
    editor.recalculate_all()
    editor.change_progress(A, 90)

    removed = editor.remove_task(C)

    assert [task.id for task in removed] == [C]
    assert _dates(editor, P1) == (dt.date(2024, 1, 8), dt.date(2024, 1, 12))
    assert editor.effective(P1).progress_percentage == 45


def test_add_task_and_clear_schedule(editor: ScheduleEditor) -> None:
    new_id = editor.store.next_temporary_id()
    editor.add_task(Task(id=new_id, name="New", parent_task_id=P1))
    editor.change_start(new_id, "2024-02-01")

    assert _dates(editor, P1)[1] == dt.date(2024, 2, 1)

    editor.clear_schedule()

    assert editor.snapshot() == []
    assert not editor.has_unsaved_changes


def test_policy_parse_defaults_to_single_hop() -> None:
    assert PropagationPolicy.parse("TRANSITIVE") is PropagationPolicy.TRANSITIVE
    assert PropagationPolicy.parse("sideways") is PropagationPolicy.SINGLE_HOP
