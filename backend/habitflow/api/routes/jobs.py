"""Operational endpoints for scheduler jobs."""
from __future__ import annotations

from datetime import datetime
from time import perf_counter
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from habitflow.api.schemas.jobs import JobRunRequest, JobRunResponse
from habitflow.core.config import settings
from habitflow.db.deps import get_db
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.job_runner import run_reminders_for_all_users
from habitflow.worker.scheduler_main import REMINDER_TRIGGER

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "reminder_trigger": REMINDER_TRIGGER,
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    now = payload.at or datetime.now(ZoneInfo(settings.scheduler_timezone))
    metadata = {"job": payload.job, "at": now.isoformat(), "request_id": request_id}
    start = perf_counter()
    with trace("jobs.run_now", metadata=metadata, request_id=request_id):
        user_ids = [payload.user_id] if payload.user_id else None
        result = run_reminders_for_all_users(db, now, user_ids=user_ids)

    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})
    log_metric("jobs.run_now.latency_ms", (perf_counter() - start) * 1000, metadata={"job": payload.job})

    return JobRunResponse(
        job=payload.job,
        users_processed=result.users_processed,
        reminders_sent=result.reminders_sent,
        request_id=request_id or "",
    )
