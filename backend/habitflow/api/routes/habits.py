"""Habit CRUD, schedule editing, conflict checks and completion routes."""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from habitflow.api.schemas.habit import (
    CompletionToggleRequest,
    CompletionToggleResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictPayload,
    HabitCreateRequest,
    HabitResponse,
    HabitUpdateRequest,
    ScheduleFieldEditRequest,
)
from habitflow.db.deps import get_db
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.conflict_detector import find_conflict
from habitflow.services.day_schedule import DaySchedule, update_field
from habitflow.services.habit_completion import toggle_completion
from habitflow.services.habit_model import Habit, HabitCategory, Weekday, validate_habit
from habitflow.services.habit_store import HabitNotFoundError, SqlHabitStore

router = APIRouter()


@router.get("/habits", response_model=List[HabitResponse], tags=["habits"])
def list_habits(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the habits"),
    category: Optional[HabitCategory] = Query(default=None),
    include_archived: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> List[HabitResponse]:
    """List a user's habits, optionally filtered by category."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/habits",
        "user_id": str(user_id),
        "category": category.value if category else None,
        "request_id": request_id,
    }
    with trace("habit.list", metadata=metadata, user_id=str(user_id), request_id=request_id):
        habits = SqlHabitStore(db, user_id).list(category)
        if not include_archived:
            habits = [habit for habit in habits if not habit.archived]

    log_metric("habit.list.count", len(habits), metadata={"user_id": str(user_id)})
    return [HabitResponse.from_domain(habit) for habit in habits]


@router.post("/habits", response_model=HabitResponse, status_code=status.HTTP_201_CREATED, tags=["habits"])
def create_habit(
    payload: HabitCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> HabitResponse:
    """Create a habit after validation and conflict detection."""
    request_id = getattr(http_request.state, "request_id", None)
    store = SqlHabitStore(db, payload.user_id)
    metadata: Dict[str, Any] = {
        "route": "/habits",
        "user_id": str(payload.user_id),
        "request_id": request_id,
    }
    with trace("habit.create", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        habit = _validated(lambda: payload.to_habit())
        _raise_on_conflict(habit, store)
        _save(store, habit, db)

    log_metric("habit.create.success", 1, metadata={"user_id": str(payload.user_id)})
    return HabitResponse.from_domain(habit)


@router.get("/habits/{habit_id}", response_model=HabitResponse, tags=["habits"])
def get_habit(
    habit_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the habit"),
    db: Session = Depends(get_db),
) -> HabitResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "habit.get",
        metadata={"habit_id": str(habit_id), "request_id": request_id},
        user_id=str(user_id),
        request_id=request_id,
    ):
        habit = _load(SqlHabitStore(db, user_id), habit_id)
    return HabitResponse.from_domain(habit)


@router.put("/habits/{habit_id}", response_model=HabitResponse, tags=["habits"])
def update_habit(
    habit_id: UUID,
    payload: HabitUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> HabitResponse:
    """Replace a habit's definition; completion history is preserved."""
    request_id = getattr(http_request.state, "request_id", None)
    store = SqlHabitStore(db, payload.user_id)
    metadata: Dict[str, Any] = {
        "route": f"/habits/{habit_id}",
        "habit_id": str(habit_id),
        "request_id": request_id,
    }
    with trace("habit.update", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        existing = _load(store, habit_id)
        habit = _validated(lambda: payload.to_habit(habit_id, existing=existing))
        _raise_on_conflict(habit, store)
        _save(store, habit, db)

    log_metric("habit.update.success", 1, metadata={"user_id": str(payload.user_id)})
    return HabitResponse.from_domain(habit)


@router.delete("/habits/{habit_id}", tags=["habits"])
def delete_habit(
    habit_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the habit"),
    db: Session = Depends(get_db),
) -> dict:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "habit.delete",
        metadata={"habit_id": str(habit_id), "request_id": request_id},
        user_id=str(user_id),
        request_id=request_id,
    ):
        try:
            SqlHabitStore(db, user_id).delete(habit_id)
        except HabitNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Habit not found")

    log_metric("habit.delete.success", 1, metadata={"user_id": str(user_id)})
    return {"id": str(habit_id), "deleted": True, "request_id": request_id or ""}


@router.patch("/habits/{habit_id}/schedule/{day}", response_model=HabitResponse, tags=["habits"])
def edit_day_schedule(
    habit_id: UUID,
    day: Weekday,
    payload: ScheduleFieldEditRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> HabitResponse:
    """Edit one field of a weekday's window, keeping the others consistent."""
    request_id = getattr(http_request.state, "request_id", None)
    store = SqlHabitStore(db, payload.user_id)
    metadata: Dict[str, Any] = {
        "route": f"/habits/{habit_id}/schedule/{day.value}",
        "field": payload.field.value,
        "request_id": request_id,
    }
    with trace("habit.schedule_edit", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        existing = _load(store, habit_id)
        if not existing.is_active_on(day):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Habit is not active on {day.value}",
            )
        window = existing.window_for(day) or DaySchedule.build(0, core=existing.default_duration_minutes)

        def _edited() -> Habit:
            schedule = dict(existing.schedule)
            schedule[day] = update_field(window, payload.field, payload.domain_value())
            return replace(existing, schedule=schedule)

        habit = _validated(_edited)
        _raise_on_conflict(habit, store)
        _save(store, habit, db)

    log_metric("habit.schedule_edit.success", 1, metadata={"field": payload.field.value})
    return HabitResponse.from_domain(habit)


@router.post("/habits/conflicts/check", response_model=ConflictCheckResponse, tags=["habits"])
def check_conflicts(
    payload: ConflictCheckRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ConflictCheckResponse:
    """Report the first overlap a candidate habit would cause, without saving it."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "habit.conflict_check",
        metadata={"request_id": request_id},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        candidate = _validated(lambda: payload.to_habit(payload.habit_id))
        conflict = find_conflict(candidate, SqlHabitStore(db, payload.user_id).list())

    log_metric("habit.conflict_check.result", 1 if conflict else 0, metadata={"user_id": str(payload.user_id)})
    return ConflictCheckResponse(
        conflict=ConflictPayload.from_domain(conflict) if conflict else None,
        request_id=request_id or "",
    )


@router.post("/habits/{habit_id}/completion", response_model=CompletionToggleResponse, tags=["habits"])
def toggle_habit_completion(
    habit_id: UUID,
    payload: CompletionToggleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> CompletionToggleResponse:
    """Toggle completion for a date (today by default) and return the new streak."""
    request_id = getattr(http_request.state, "request_id", None)
    on = payload.date or date.today()
    store = SqlHabitStore(db, payload.user_id)
    with trace(
        "habit.completion_toggle",
        metadata={"habit_id": str(habit_id), "date": on.isoformat(), "request_id": request_id},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        habit = toggle_completion(_load(store, habit_id), on)
        _save(store, habit, db)

    completed = habit.is_completed_on(on)
    log_metric("habit.completion_toggle.success", 1, metadata={"completed": completed})
    return CompletionToggleResponse(
        id=habit.id,
        date=on,
        completed=completed,
        streak=habit.streak,
        request_id=request_id or "",
    )


def _load(store: SqlHabitStore, habit_id: UUID) -> Habit:
    try:
        return store.get(habit_id)
    except HabitNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Habit not found")


def _validated(build) -> Habit:
    try:
        return validate_habit(build())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _raise_on_conflict(habit: Habit, store: SqlHabitStore) -> None:
    conflict = find_conflict(habit, store.list())
    if conflict is None:
        return
    log_metric("habit.conflict", 1, metadata={"day": conflict.day.value})
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "day": conflict.day.value,
            "habit_id": str(conflict.with_habit_id),
            "habit_name": conflict.with_habit_name,
            "message": conflict.describe(),
        },
    )


def _save(store: SqlHabitStore, habit: Habit, db: Session) -> None:
    try:
        store.put(habit)
    except Exception:
        db.rollback()
        raise
