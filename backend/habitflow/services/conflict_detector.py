"""Pre-save overlap detection between habits sharing a weekday."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from uuid import UUID

from habitflow.services.habit_model import Habit, Weekday


@dataclass(frozen=True)
class Conflict:
    day: Weekday
    with_habit_id: UUID
    with_habit_name: str
    window: Tuple[int, int]
    other_window: Tuple[int, int]

    def describe(self) -> str:
        return f"Conflict detected on {self.day.value} with habit \"{self.with_habit_name}\""


def _interval(habit: Habit, day: Weekday) -> Optional[Tuple[int, int]]:
    window = habit.window_for(day)
    if window is None:
        return None
    # Phase lengths are authoritative here; stored totals may be stale.
    start = window.start_time
    return start, start + window.phase_minutes


def overlaps(first: Tuple[int, int], second: Tuple[int, int]) -> bool:
    start, end = first
    other_start, other_end = second
    return start < other_end and other_start < end


def find_conflict(
    candidate: Habit,
    existing: Iterable[Habit],
    exclude_id: UUID | None = None,
) -> Optional[Conflict]:
    """
    Return the first overlap between ``candidate`` and any other habit.

    Days are scanned in the candidate's ``active_days`` order and habits in the
    order given; the first overlapping pair wins. ``exclude_id`` (typically the
    id of the habit being edited) and the candidate's own id are never compared.
    An archived candidate never conflicts.
    """
    if candidate.archived:
        return None
    others = [
        habit
        for habit in existing
        if habit.id != candidate.id and habit.id != exclude_id and not habit.archived
    ]
    for day in candidate.active_days:
        interval = _interval(candidate, day)
        if interval is None:
            continue
        for other in others:
            if not other.is_active_on(day):
                continue
            other_interval = _interval(other, day)
            if other_interval is None:
                continue
            if overlaps(interval, other_interval):
                return Conflict(
                    day=day,
                    with_habit_id=other.id,
                    with_habit_name=other.name,
                    window=interval,
                    other_window=other_interval,
                )
    return None
