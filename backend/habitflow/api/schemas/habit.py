"""Schemas for habit CRUD, schedule edits and conflict checks."""
from __future__ import annotations

import datetime as dt
from typing import Annotated, Dict, List, Optional, Union
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field, model_validator

from habitflow.services.conflict_detector import Conflict
from habitflow.services.day_schedule import CLOCK_FIELDS, DaySchedule, ScheduleField, update_field
from habitflow.services.habit_model import DEFAULT_DURATION_MINUTES, Habit, HabitCategory, Weekday
from habitflow.services.time_math import parse_clock, to_clock


def _normalize_clock(value: str) -> str:
    return to_clock(parse_clock(value))


ClockTime = Annotated[str, AfterValidator(_normalize_clock)]


class DaySchedulePayload(BaseModel):
    start_time: ClockTime
    end_time: Optional[ClockTime] = None
    pre_duration_minutes: int = Field(default=0, ge=0)
    core_duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, ge=1)
    reward_duration_minutes: int = Field(default=0, ge=0)

    def to_domain(self) -> DaySchedule:
        schedule = DaySchedule.build(
            parse_clock(self.start_time),
            pre=self.pre_duration_minutes,
            core=self.core_duration_minutes,
            reward=self.reward_duration_minutes,
        )
        if self.end_time is not None:
            schedule = update_field(schedule, ScheduleField.END_TIME, parse_clock(self.end_time))
        return schedule


class DayScheduleResponse(BaseModel):
    start_time: str
    end_time: str
    total_duration_minutes: int
    pre_duration_minutes: int
    core_duration_minutes: int
    reward_duration_minutes: int

    @classmethod
    def from_domain(cls, schedule: DaySchedule) -> "DayScheduleResponse":
        return cls(
            start_time=to_clock(schedule.start_time),
            end_time=to_clock(schedule.end_time),
            total_duration_minutes=schedule.total_duration_minutes,
            pre_duration_minutes=schedule.pre_duration_minutes,
            core_duration_minutes=schedule.core_duration_minutes,
            reward_duration_minutes=schedule.reward_duration_minutes,
        )


class HabitFields(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: HabitCategory = HabitCategory.GENERAL
    active_days: List[Weekday] = Field(min_length=1)
    schedule: Dict[Weekday, DaySchedulePayload] = Field(default_factory=dict)
    default_time: Optional[ClockTime] = None
    default_duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, ge=1)
    excluded_dates: List[dt.date] = Field(default_factory=list)
    archived: bool = False
    cue: str = ""
    craving: str = ""
    response: str = ""
    reward: str = ""

    def to_habit(self, habit_id: UUID | None = None, *, existing: Habit | None = None) -> Habit:
        """Build a domain habit; completion history is carried over from ``existing``."""
        kwargs = {}
        if habit_id is not None:
            kwargs["id"] = habit_id
        if existing is not None:
            kwargs["streak"] = existing.streak
            kwargs["completed_dates"] = existing.completed_dates
        return Habit(
            name=self.name,
            category=self.category,
            active_days=tuple(self.active_days),
            schedule={day: window.to_domain() for day, window in self.schedule.items()},
            default_time=parse_clock(self.default_time) if self.default_time else None,
            default_duration_minutes=self.default_duration_minutes,
            excluded_dates=tuple(self.excluded_dates),
            archived=self.archived,
            cue=self.cue,
            craving=self.craving,
            response=self.response,
            reward=self.reward,
            **kwargs,
        )


class HabitCreateRequest(HabitFields):
    user_id: UUID


class HabitUpdateRequest(HabitFields):
    user_id: UUID


class HabitResponse(BaseModel):
    id: UUID
    name: str
    category: HabitCategory
    active_days: List[Weekday]
    schedule: Dict[Weekday, DayScheduleResponse]
    default_time: Optional[str]
    default_duration_minutes: int
    streak: int
    completed_dates: List[dt.date]
    excluded_dates: List[dt.date]
    archived: bool
    cue: str
    craving: str
    response: str
    reward: str

    @classmethod
    def from_domain(cls, habit: Habit) -> "HabitResponse":
        return cls(
            id=habit.id,
            name=habit.name,
            category=habit.category,
            active_days=list(habit.active_days),
            schedule={day: DayScheduleResponse.from_domain(window) for day, window in habit.schedule.items()},
            default_time=to_clock(habit.default_time) if habit.default_time is not None else None,
            default_duration_minutes=habit.default_duration_minutes,
            streak=habit.streak,
            completed_dates=list(habit.completed_dates),
            excluded_dates=list(habit.excluded_dates),
            archived=habit.archived,
            cue=habit.cue,
            craving=habit.craving,
            response=habit.response,
            reward=habit.reward,
        )


class ConflictPayload(BaseModel):
    day: Weekday
    habit_id: UUID
    habit_name: str
    message: str

    @classmethod
    def from_domain(cls, conflict: Conflict) -> "ConflictPayload":
        return cls(
            day=conflict.day,
            habit_id=conflict.with_habit_id,
            habit_name=conflict.with_habit_name,
            message=conflict.describe(),
        )


class ConflictCheckRequest(HabitFields):
    user_id: UUID
    habit_id: Optional[UUID] = None


class ConflictCheckResponse(BaseModel):
    conflict: Optional[ConflictPayload]
    request_id: str


class ScheduleFieldEditRequest(BaseModel):
    user_id: UUID
    field: ScheduleField
    value: Union[int, str]

    @model_validator(mode="after")
    def _check_value_type(self) -> "ScheduleFieldEditRequest":
        if self.field in CLOCK_FIELDS:
            if not isinstance(self.value, str):
                raise ValueError(f"{self.field.value} expects an HH:MM string")
            self.value = _normalize_clock(self.value)
        elif not isinstance(self.value, int) or self.value < 0:
            raise ValueError(f"{self.field.value} expects a non-negative integer")
        return self

    def domain_value(self) -> int:
        if isinstance(self.value, str):
            return parse_clock(self.value)
        return self.value


class CompletionToggleRequest(BaseModel):
    user_id: UUID
    date: Optional[dt.date] = None


class CompletionToggleResponse(BaseModel):
    id: UUID
    date: dt.date
    completed: bool
    streak: int
    request_id: str
