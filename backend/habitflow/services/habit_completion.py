"""Completion toggling and streak bookkeeping."""
from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from habitflow.services.habit_model import Habit

# A habit active on a single weekday needs at most a week to find the previous occurrence.
_MAX_GAP_DAYS = 7


def toggle_completion(habit: Habit, on: date) -> Habit:
    """Mark ``on`` done (or undone) and recompute the streak."""
    completed = set(habit.completed_dates)
    if on in completed:
        completed.discard(on)
    else:
        completed.add(on)
    updated = replace(habit, completed_dates=tuple(sorted(completed)))
    return replace(updated, streak=compute_streak(updated, on))


def compute_streak(habit: Habit, as_of: date) -> int:
    """
    Count consecutive scheduled occurrences completed up to ``as_of``.

    Unscheduled dates (inactive weekdays, exclusions) neither break nor extend
    the streak. An unfinished ``as_of`` does not break it either; counting then
    starts from the previous occurrence.
    """
    if not habit.active_days or habit.archived:
        return 0
    completed = set(habit.completed_dates)
    cursor = as_of
    if habit.is_scheduled_on(cursor) and cursor not in completed:
        cursor = _previous_occurrence(habit, cursor)

    streak = 0
    while cursor is not None:
        if not habit.is_scheduled_on(cursor):
            cursor = _previous_occurrence(habit, cursor)
            continue
        if cursor not in completed:
            break
        streak += 1
        cursor = _previous_occurrence(habit, cursor)
    return streak


def _previous_occurrence(habit: Habit, before: date) -> date | None:
    earliest = min(habit.completed_dates, default=before)
    cursor = before - timedelta(days=1)
    for _ in range(_MAX_GAP_DAYS * (len(habit.excluded_dates) + 1)):
        if cursor < earliest:
            return None
        if habit.is_scheduled_on(cursor):
            return cursor
        cursor -= timedelta(days=1)
    return None
