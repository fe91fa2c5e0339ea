"""Find habits whose adjusted start time is due."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List

from habitflow.services.adaptation_engine import AdaptationEvent, ScheduledSlot, project_day
from habitflow.services.habit_model import Habit
from habitflow.services.time_math import MINUTES_PER_DAY


def due_reminders(
    habits: Iterable[Habit],
    events: Iterable[AdaptationEvent],
    now: datetime,
) -> List[ScheduledSlot]:
    """
    Return the open slots whose adjusted start falls on ``now``'s minute.

    Meant to run once per minute. ``events`` may span today and yesterday:
    a slot that yesterday's events pushed past midnight is due this morning.
    """
    habits = list(habits)
    events = list(events)
    minute_of_day = now.hour * 60 + now.minute
    today = now.date()

    due = [
        slot
        for slot in project_day(today, habits, events)
        if not slot.completed and slot.start == minute_of_day
    ]
    due.extend(
        slot
        for slot in project_day(today - timedelta(days=1), habits, events)
        if not slot.completed and slot.start - MINUTES_PER_DAY == minute_of_day
    )
    return due
