"""Schemas for adaptation events and the adjusted day view."""
from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from habitflow.api.schemas.habit import ClockTime
from habitflow.services.adaptation_engine import AdaptationEvent, EventKind, ScheduledSlot, ShiftedSlot
from habitflow.services.time_math import to_clock


class AdaptationEventRequest(BaseModel):
    user_id: UUID
    date: Optional[dt.date] = None
    event_kind: EventKind = EventKind.DISRUPTION
    description: str = Field(default="", max_length=500)
    start_time: ClockTime
    duration_minutes: int = Field(ge=1, le=24 * 60)


class ShiftedSlotPayload(BaseModel):
    original_start: str
    new_start: str
    shift_minutes: int
    rationale: str

    @classmethod
    def from_domain(cls, slot: ShiftedSlot) -> "ShiftedSlotPayload":
        return cls(
            original_start=to_clock(slot.original_start),
            new_start=slot.new_start_clock,
            shift_minutes=slot.shift_minutes,
            rationale=slot.rationale,
        )


class AdaptationEventResponse(BaseModel):
    id: UUID
    date: dt.date
    event_kind: EventKind
    description: str
    start_time: str
    duration_minutes: int
    shifted_schedule: Dict[UUID, ShiftedSlotPayload]
    created_at: dt.datetime

    @classmethod
    def from_domain(cls, event: AdaptationEvent) -> "AdaptationEventResponse":
        return cls(
            id=event.id,
            date=event.date,
            event_kind=event.event_kind,
            description=event.description,
            start_time=to_clock(event.start_time),
            duration_minutes=event.duration_minutes,
            shifted_schedule={
                habit_id: ShiftedSlotPayload.from_domain(slot) for habit_id, slot in event.shifted_schedule.items()
            },
            created_at=event.created_at,
        )


class AdaptationEventListResponse(BaseModel):
    date: dt.date
    events: List[AdaptationEventResponse]
    request_id: str


class DaySlotPayload(BaseModel):
    habit_id: UUID
    habit_name: str
    start_time: str
    end_time: str
    base_start_time: str
    duration_minutes: int
    shifted: bool
    completed: bool
    rationales: List[str]

    @classmethod
    def from_domain(cls, slot: ScheduledSlot) -> "DaySlotPayload":
        return cls(
            habit_id=slot.habit.id,
            habit_name=slot.habit.name,
            start_time=to_clock(slot.start),
            end_time=to_clock(slot.end),
            base_start_time=to_clock(slot.base_start),
            duration_minutes=slot.duration_minutes,
            shifted=slot.shifted,
            completed=slot.completed,
            rationales=list(slot.rationales),
        )


class DayViewResponse(BaseModel):
    user_id: UUID
    date: dt.date
    slots: List[DaySlotPayload]
    request_id: str
