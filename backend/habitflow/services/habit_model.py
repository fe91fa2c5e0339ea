"""Domain representation of a recurring weekly habit."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID, uuid4

from habitflow.services.day_schedule import DaySchedule


class Weekday(str, Enum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"

    @classmethod
    def for_date(cls, day: date) -> "Weekday":
        return WEEK[day.weekday()]


WEEK: Tuple[Weekday, ...] = tuple(Weekday)


class HabitCategory(str, Enum):
    GENERAL = "General"
    WORK = "Work"
    STUDY = "Study"
    HEALTH = "Health"
    CREATIVE = "Creative"
    LEGACY = "Legacy"


DEFAULT_DURATION_MINUTES = 30


class HabitValidationError(ValueError):
    """Raised when a habit cannot be saved as-is."""


@dataclass(frozen=True)
class Habit:
    """A named activity that recurs on a set of weekdays."""

    name: str
    active_days: Tuple[Weekday, ...]
    id: UUID = field(default_factory=uuid4)
    category: HabitCategory = HabitCategory.GENERAL
    schedule: Dict[Weekday, DaySchedule] = field(default_factory=dict)
    default_time: Optional[int] = None
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES
    streak: int = 0
    completed_dates: Tuple[date, ...] = ()
    excluded_dates: Tuple[date, ...] = ()
    archived: bool = False
    cue: str = ""
    craving: str = ""
    response: str = ""
    reward: str = ""

    def is_active_on(self, day: Weekday) -> bool:
        return day in self.active_days

    def is_scheduled_on(self, on: date) -> bool:
        """True when the habit should appear in the plan for a calendar date."""
        if self.archived or on in self.excluded_dates:
            return False
        return self.is_active_on(Weekday.for_date(on))

    def window_for(self, day: Weekday) -> Optional[DaySchedule]:
        """
        Resolve the effective window for a weekday.

        The explicit per-day entry wins; otherwise a window of
        ``default_duration_minutes`` starting at ``default_time`` is used.
        Returns ``None`` when neither is available.
        """
        explicit = self.schedule.get(day)
        if explicit is not None:
            return explicit
        if self.default_time is None:
            return None
        return DaySchedule.build(self.default_time, core=self.default_duration_minutes)

    def is_completed_on(self, on: date) -> bool:
        return on in self.completed_dates


def normalize_days(days: Iterable[Weekday | str]) -> Tuple[Weekday, ...]:
    """Deduplicate and order weekday tags Mon..Sun."""
    wanted = {Weekday(day) for day in days}
    return tuple(day for day in WEEK if day in wanted)


def normalize_habit(habit: Habit) -> Habit:
    """Order active days and drop schedule entries for inactive days."""
    active_days = normalize_days(habit.active_days)
    schedule = {day: window for day, window in habit.schedule.items() if day in active_days}
    return replace(
        habit,
        name=habit.name.strip(),
        active_days=active_days,
        schedule=schedule,
        completed_dates=tuple(sorted(set(habit.completed_dates))),
        excluded_dates=tuple(sorted(set(habit.excluded_dates))),
    )


def validate_habit(habit: Habit) -> Habit:
    """Return the normalized habit or raise ``HabitValidationError``."""
    errors: List[str] = []
    if not habit.name or not habit.name.strip():
        errors.append("Habit name is required")
    if not habit.active_days:
        errors.append("Select at least one active day")
    if habit.default_duration_minutes < 1:
        errors.append("Default duration must be at least 1 minute")
    if errors:
        raise HabitValidationError("; ".join(errors))
    return normalize_habit(habit)
