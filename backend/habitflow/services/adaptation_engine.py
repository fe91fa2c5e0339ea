"""Date-scoped schedule shifts for one-off events (disruptions and sessions)."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Tuple
from uuid import UUID, uuid4

from habitflow.services.habit_model import Habit, Weekday
from habitflow.services.time_math import to_clock


class EventKind(str, Enum):
    SESSION = "session"
    DISRUPTION = "disruption"


@dataclass(frozen=True)
class Disruption:
    start_time: int
    duration_minutes: int
    event_kind: EventKind = EventKind.DISRUPTION
    description: str = ""


@dataclass(frozen=True)
class ShiftedSlot:
    original_start: int
    new_start: int
    rationale: str

    @property
    def shift_minutes(self) -> int:
        return self.new_start - self.original_start

    @property
    def new_start_clock(self) -> str:
        return to_clock(self.new_start)


@dataclass(frozen=True)
class AdaptationEvent:
    date: date
    event_kind: EventKind
    description: str
    start_time: int
    duration_minutes: int
    shifted_schedule: Dict[UUID, ShiftedSlot] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ScheduledSlot:
    """One habit as it appears on a specific date, after adaptations."""

    habit: Habit
    base_start: int
    start: int
    duration_minutes: int
    completed: bool
    rationales: List[str] = field(default_factory=list)

    @property
    def end(self) -> int:
        return self.start + self.duration_minutes

    @property
    def shifted(self) -> bool:
        return self.start != self.base_start


def apply_disruption(
    on: date,
    disruption: Disruption,
    todays_habits: Iterable[Habit],
    prior_events: Iterable[AdaptationEvent] = (),
) -> AdaptationEvent:
    """
    Build the adaptation event for a one-off event on ``on``.

    Every habit scheduled that day whose start is at or after the event start
    moves later by the event duration; habits starting earlier are untouched and
    absent from ``shifted_schedule``. Starts are taken after ``prior_events``
    already recorded for ``on``, so stacked disruptions compose. Sessions are
    informational and shift nothing. The habits themselves are never modified.
    """
    if disruption.duration_minutes < 0:
        raise ValueError("Event duration must be >= 0")

    shifted: Dict[UUID, ShiftedSlot] = {}
    if disruption.event_kind is EventKind.DISRUPTION:
        rationale = f"shifted by {disruption.duration_minutes}m due to {disruption.event_kind.value}"
        for slot in project_day(on, todays_habits, prior_events):
            if slot.start < disruption.start_time:
                continue
            shifted[slot.habit.id] = ShiftedSlot(
                original_start=slot.start,
                new_start=slot.start + disruption.duration_minutes,
                rationale=rationale,
            )

    return AdaptationEvent(
        date=on,
        event_kind=disruption.event_kind,
        description=disruption.description,
        start_time=disruption.start_time,
        duration_minutes=disruption.duration_minutes,
        shifted_schedule=shifted,
    )


def project_day(on: date, habits: Iterable[Habit], events: Iterable[AdaptationEvent]) -> List[ScheduledSlot]:
    """
    Render the adjusted plan for one date.

    Shifts from every event recorded for ``on`` are summed per habit, in event
    creation order. Each event already measured its shifts against the starts
    left by the events before it. Slots are returned sorted by adjusted start time.
    """
    weekday = Weekday.for_date(on)
    day_events = sorted((event for event in events if event.date == on), key=lambda event: event.created_at)

    slots: List[ScheduledSlot] = []
    for habit in habits:
        if not habit.is_scheduled_on(on):
            continue
        window = habit.window_for(weekday)
        if window is None:
            continue
        slot = ScheduledSlot(
            habit=habit,
            base_start=window.start_time,
            start=window.start_time,
            duration_minutes=window.phase_minutes,
            completed=habit.is_completed_on(on),
        )
        for event in day_events:
            entry = event.shifted_schedule.get(habit.id)
            if entry is None:
                continue
            slot.start += entry.shift_minutes
            slot.rationales.append(entry.rationale)
        slots.append(slot)

    slots.sort(key=_slot_sort_key)
    return slots


def _slot_sort_key(slot: ScheduledSlot) -> Tuple[int, str]:
    return slot.start, slot.habit.name
