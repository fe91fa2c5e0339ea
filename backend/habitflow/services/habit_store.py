"""Persistence collaborators for habits and adaptation events."""
from __future__ import annotations

import logging
from datetime import date, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habitflow.db.models.adaptation_event import AdaptationEventRecord
from habitflow.db.models.habit import Habit as HabitRow
from habitflow.services.adaptation_engine import AdaptationEvent, EventKind, ShiftedSlot
from habitflow.services.day_schedule import DaySchedule
from habitflow.services.habit_model import Habit, HabitCategory, Weekday
from habitflow.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)


class HabitStoreError(Exception):
    """Raised when the store rejects a write."""


class HabitNotFoundError(HabitStoreError, LookupError):
    def __init__(self, habit_id: UUID):
        super().__init__(f"Habit {habit_id} not found")
        self.habit_id = habit_id


class HabitStore(Protocol):
    def list(self, category: Optional[HabitCategory] = None) -> List[Habit]:
        ...

    def get(self, habit_id: UUID) -> Habit:
        ...

    def put(self, habit: Habit) -> None:
        ...

    def delete(self, habit_id: UUID) -> None:
        ...


class AdaptationLog(Protocol):
    def append(self, on: date, event: AdaptationEvent) -> None:
        ...

    def list(self, on: date) -> List[AdaptationEvent]:
        ...


class SqlHabitStore:
    """Habit store backed by the ``habits`` table, scoped to one user.

    Every write commits immediately so each call is atomic on its own.
    """

    def __init__(self, db: Session, user_id: UUID):
        self.db = db
        self.user_id = user_id

    def list(self, category: Optional[HabitCategory] = None) -> List[Habit]:
        query = self.db.query(HabitRow).filter(HabitRow.user_id == self.user_id)
        if category is not None:
            query = query.filter(HabitRow.category == HabitCategory(category).value)
        rows = query.order_by(asc(HabitRow.created_at), asc(HabitRow.name)).all()
        return [habit_from_row(row) for row in rows]

    def get(self, habit_id: UUID) -> Habit:
        return habit_from_row(self._get_row(habit_id))

    def put(self, habit: Habit) -> None:
        row = self.db.get(HabitRow, habit.id)
        if row is not None and row.user_id != self.user_id:
            raise HabitStoreError(f"Habit {habit.id} belongs to another user")
        try:
            if row is None:
                get_or_create_user(self.db, self.user_id)
                row = HabitRow(id=habit.id, user_id=self.user_id)
            write_habit_to_row(habit, row)
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise HabitStoreError(f"Failed to save habit {habit.id}") from exc

    def delete(self, habit_id: UUID) -> None:
        row = self._get_row(habit_id)
        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise HabitStoreError(f"Failed to delete habit {habit_id}") from exc

    def _get_row(self, habit_id: UUID) -> HabitRow:
        row = self.db.get(HabitRow, habit_id)
        if row is None or row.user_id != self.user_id:
            raise HabitNotFoundError(habit_id)
        return row


class SqlAdaptationLog:
    """Append-only log of adaptation events, scoped to one user."""

    def __init__(self, db: Session, user_id: UUID):
        self.db = db
        self.user_id = user_id

    def append(self, on: date, event: AdaptationEvent) -> None:
        if event.date != on:
            raise ValueError(f"Event dated {event.date} cannot be logged under {on}")
        try:
            get_or_create_user(self.db, self.user_id)
            self.db.add(
                AdaptationEventRecord(
                    id=event.id,
                    user_id=self.user_id,
                    event_date=event.date,
                    event_kind=event.event_kind.value,
                    description=event.description,
                    start_time=event.start_time,
                    duration_min=event.duration_minutes,
                    shifted_schedule=_shifts_to_json(event.shifted_schedule),
                    created_at=event.created_at,
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise HabitStoreError(f"Failed to log adaptation event {event.id}") from exc

    def list(self, on: date) -> List[AdaptationEvent]:
        rows = (
            self.db.query(AdaptationEventRecord)
            .filter(
                AdaptationEventRecord.user_id == self.user_id,
                AdaptationEventRecord.event_date == on,
            )
            .order_by(asc(AdaptationEventRecord.created_at))
            .all()
        )
        return [event_from_row(row) for row in rows]


def habit_from_row(row: HabitRow) -> Habit:
    schedule = {
        Weekday(day): DaySchedule.from_dict(window)
        for day, window in (row.schedule or {}).items()
    }
    return Habit(
        id=row.id,
        name=row.name,
        category=HabitCategory(row.category or HabitCategory.GENERAL.value),
        active_days=tuple(Weekday(day) for day in (row.active_days or [])),
        schedule=schedule,
        default_time=row.default_time,
        default_duration_minutes=row.default_duration_min or 30,
        streak=row.streak or 0,
        completed_dates=tuple(date.fromisoformat(value) for value in (row.completed_dates or [])),
        excluded_dates=tuple(date.fromisoformat(value) for value in (row.excluded_dates or [])),
        archived=bool(row.archived),
        cue=row.cue or "",
        craving=row.craving or "",
        response=row.response or "",
        reward=row.reward or "",
    )


def write_habit_to_row(habit: Habit, row: HabitRow) -> None:
    row.name = habit.name
    row.category = habit.category.value
    row.active_days = [day.value for day in habit.active_days]
    row.schedule = {day.value: window.to_dict() for day, window in habit.schedule.items()}
    row.default_time = habit.default_time
    row.default_duration_min = habit.default_duration_minutes
    row.streak = habit.streak
    row.completed_dates = [value.isoformat() for value in habit.completed_dates]
    row.excluded_dates = [value.isoformat() for value in habit.excluded_dates]
    row.archived = habit.archived
    row.cue = habit.cue
    row.craving = habit.craving
    row.response = habit.response
    row.reward = habit.reward


def event_from_row(row: AdaptationEventRecord) -> AdaptationEvent:
    created_at = row.created_at
    if created_at.tzinfo is None:
        # SQLite drops tzinfo on read.
        created_at = created_at.replace(tzinfo=timezone.utc)
    return AdaptationEvent(
        id=row.id,
        date=row.event_date,
        event_kind=EventKind(row.event_kind),
        description=row.description or "",
        start_time=row.start_time,
        duration_minutes=row.duration_min,
        shifted_schedule=_shifts_from_json(row.shifted_schedule or {}),
        created_at=created_at,
    )


def _shifts_to_json(shifts: Dict[UUID, ShiftedSlot]) -> Dict[str, Dict[str, Any]]:
    return {
        str(habit_id): {
            "original_start": slot.original_start,
            "new_start": slot.new_start,
            "new_start_time": slot.new_start_clock,
            "rationale": slot.rationale,
        }
        for habit_id, slot in shifts.items()
    }


def _shifts_from_json(payload: Dict[str, Dict[str, Any]]) -> Dict[UUID, ShiftedSlot]:
    return {
        UUID(habit_id): ShiftedSlot(
            original_start=int(entry["original_start"]),
            new_start=int(entry["new_start"]),
            rationale=entry.get("rationale", ""),
        )
        for habit_id, entry in payload.items()
    }
