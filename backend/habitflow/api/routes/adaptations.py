"""Adaptation event logging and adjusted day view routes."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from habitflow.api.schemas.adaptation import (
    AdaptationEventListResponse,
    AdaptationEventRequest,
    AdaptationEventResponse,
    DaySlotPayload,
    DayViewResponse,
)
from habitflow.db.deps import get_db
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.adaptation_engine import Disruption, apply_disruption, project_day
from habitflow.services.habit_store import HabitStoreError, SqlAdaptationLog, SqlHabitStore
from habitflow.services.time_math import parse_clock

router = APIRouter()


@router.post(
    "/adaptations",
    response_model=AdaptationEventResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["adaptations"],
)
def log_adaptation(
    payload: AdaptationEventRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> AdaptationEventResponse:
    """Record a one-off event and shift the affected habits for that date only."""
    request_id = getattr(http_request.state, "request_id", None)
    on = payload.date or date.today()
    metadata: Dict[str, Any] = {
        "route": "/adaptations",
        "date": on.isoformat(),
        "event_kind": payload.event_kind.value,
        "duration_minutes": payload.duration_minutes,
        "request_id": request_id,
    }
    with trace("adaptation.log", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        habits = SqlHabitStore(db, payload.user_id).list()
        adaptation_log = SqlAdaptationLog(db, payload.user_id)
        event = apply_disruption(
            on,
            Disruption(
                start_time=parse_clock(payload.start_time),
                duration_minutes=payload.duration_minutes,
                event_kind=payload.event_kind,
                description=payload.description,
            ),
            habits,
            prior_events=adaptation_log.list(on),
        )
        try:
            adaptation_log.append(on, event)
        except HabitStoreError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    log_metric(
        "adaptation.log.shifted",
        len(event.shifted_schedule),
        metadata={"event_kind": event.event_kind.value},
    )
    return AdaptationEventResponse.from_domain(event)


@router.get("/adaptations", response_model=AdaptationEventListResponse, tags=["adaptations"])
def list_adaptations(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the events"),
    on: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> AdaptationEventListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    day = on or date.today()
    with trace(
        "adaptation.list",
        metadata={"date": day.isoformat(), "request_id": request_id},
        user_id=str(user_id),
        request_id=request_id,
    ):
        events = SqlAdaptationLog(db, user_id).list(day)

    return AdaptationEventListResponse(
        date=day,
        events=[AdaptationEventResponse.from_domain(event) for event in events],
        request_id=request_id or "",
    )


@router.get("/schedule/{on}", response_model=DayViewResponse, tags=["adaptations"])
def get_day_view(
    on: date,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the habits"),
    db: Session = Depends(get_db),
) -> DayViewResponse:
    """Return the habits scheduled on a date with every logged shift applied."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "schedule.day_view",
        metadata={"date": on.isoformat(), "request_id": request_id},
        user_id=str(user_id),
        request_id=request_id,
    ):
        habits = SqlHabitStore(db, user_id).list()
        events = SqlAdaptationLog(db, user_id).list(on)
        slots = project_day(on, habits, events)

    log_metric("schedule.day_view.count", len(slots), metadata={"user_id": str(user_id)})
    return DayViewResponse(
        user_id=user_id,
        date=on,
        slots=[DaySlotPayload.from_domain(slot) for slot in slots],
        request_id=request_id or "",
    )
