"""Date recalculation engine.

Pure helpers that keep start, finish and duration consistent for a task and
derive a dependent task's dates from its predecessor. Nothing here mutates a
task; callers decide where results are stored.

All arithmetic is in calendar days with inclusive counting: a one day task
starts and finishes on the same date.
"""
from __future__ import annotations

import datetime as dt
import math
from typing import Any, Iterable, Optional

from .models import DateRange, DependencyType, Derived, PhaseAggregate, Task

DEFAULT_DURATION_DAYS = 1.0
DEFAULT_LAG_DAYS = 0
HOURS_PER_DAY = 8
# Durations and lags are capped at a century either way.
MAX_SPAN_DAYS = 36500


def parse_date(value: Any) -> Optional[dt.date]:
    """Accept a date, datetime or ISO string; anything else becomes None."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return dt.date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_duration(value: Any, default: float = DEFAULT_DURATION_DAYS) -> Derived[float]:
    """Parse a positive fractional day count."""
    if isinstance(value, bool):
        return Derived(default, True)
    try:
        days = float(value)
    except (TypeError, ValueError):
        return Derived(default, True)
    if not math.isfinite(days) or days <= 0:
        return Derived(default, True)
    if days > MAX_SPAN_DAYS:
        return Derived(float(MAX_SPAN_DAYS), True)
    return Derived(days)


def parse_lag(value: Any, default: int = DEFAULT_LAG_DAYS) -> Derived[int]:
    """Parse a whole day lag. Negative values are leads."""
    if value is None or value == "" or isinstance(value, bool):
        return Derived(default, True)
    try:
        lag = float(value)
    except (TypeError, ValueError):
        return Derived(default, True)
    if not math.isfinite(lag):
        return Derived(default, True)
    if abs(lag) > MAX_SPAN_DAYS:
        return Derived(int(math.copysign(MAX_SPAN_DAYS, lag)), True)
    return Derived(int(round(lag)))


def hours_to_days(hours: Any, hours_per_day: float = HOURS_PER_DAY) -> Optional[float]:
    """Convert an hour estimate to fractional days; None when not numeric."""
    try:
        value = float(hours)
    except (TypeError, ValueError):
        return None
    if hours_per_day <= 0:
        hours_per_day = HOURS_PER_DAY
    return value / hours_per_day


def whole_days(duration: Any) -> int:
    """Number of calendar days a duration occupies (never below 1)."""
    return max(1, math.ceil(parse_duration(duration).value))


def resolve_start(task: Optional[Task], value: Any, today: Optional[dt.date] = None) -> Derived[dt.date]:
    """Parse a start date, falling back to the task's stored start, then today."""
    start = parse_date(value)
    if start is not None:
        return Derived(start)
    if task is not None and task.start_date is not None:
        return Derived(task.start_date, True)
    return Derived(today or dt.date.today(), True)


def derive_finish_from_start(
    task: Optional[Task],
    start_date: Any,
    duration_days: Any,
    *,
    today: Optional[dt.date] = None,
) -> Derived[dt.date]:
    """finish = start + ceil(duration) - 1."""
    start = resolve_start(task, start_date, today)
    duration = parse_duration(duration_days)
    days = max(1, math.ceil(duration.value))
    try:
        finish = start.value + dt.timedelta(days=days - 1)
    except OverflowError:
        return Derived(dt.date.max, True)
    return Derived(finish, start.defaulted or duration.defaulted)


def derive_duration_from_range(start_date: Any, finish_date: Any) -> Derived[int]:
    """Inclusive day count between two dates; inverted ranges collapse to 1."""
    start = parse_date(start_date)
    finish = parse_date(finish_date)
    if start is None or finish is None:
        return Derived(1, True)
    if finish < start:
        return Derived(1, True)
    return Derived((finish - start).days + 1)


def derive_dependent_dates(
    dependency_type: Any,
    predecessor_start: Optional[dt.date],
    predecessor_finish: Optional[dt.date],
    lag_days: Any,
    dependent_duration_days: Any,
    current: Optional[DateRange] = None,
) -> Optional[DateRange]:
    """Place a dependent task relative to its predecessor.

    FS: start = predecessor finish + lag + 1
    SS: start = predecessor start + lag
    FF: finish = predecessor finish + lag
    SF: finish = predecessor start + lag

    An unknown link type, a predecessor missing the date the link needs, or
    a placement outside the calendar returns `current` untouched.
    """
    link = DependencyType.parse(dependency_type)
    if link is None:
        return current
    anchor = predecessor_finish if link in (DependencyType.FS, DependencyType.FF) else predecessor_start
    if anchor is None:
        return current
    lag = dt.timedelta(days=parse_lag(lag_days).value)
    span = dt.timedelta(days=whole_days(dependent_duration_days) - 1)

    try:
        if link is DependencyType.FS:
            start = anchor + lag + dt.timedelta(days=1)
            return DateRange(start, start + span)
        if link is DependencyType.SS:
            start = anchor + lag
            return DateRange(start, start + span)
        finish = anchor + lag
        return DateRange(finish - span, finish)
    except OverflowError:
        return current


def derive_parent_aggregate(children: Iterable[Task]) -> Optional[PhaseAggregate]:
    """Roll child dates and progress up into their phase.

    Children without dates still count towards progress. Returns None when
    there are no children.
    """
    child_list = list(children)
    if not child_list:
        return None
    starts = [child.start_date for child in child_list if child.start_date is not None]
    finishes = [child.end_date for child in child_list if child.end_date is not None]
    mean = sum(child.progress_percentage for child in child_list) / len(child_list)
    return PhaseAggregate(
        start=min(starts) if starts else None,
        finish=max(finishes) if finishes else None,
        progress_percentage=int(math.floor(mean + 0.5)),
    )
