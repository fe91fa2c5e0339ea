"""Change plan generation and application routes."""
from __future__ import annotations

from time import perf_counter
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from habitflow.api.schemas.change_plan import (
    ApplyPlanRequest,
    ApplyPlanResponse,
    GeneratePlanRequest,
    GeneratePlanResponse,
)
from habitflow.db.deps import get_db
from habitflow.db.models.agent_action_log import AgentActionLog
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.habit_store import SqlHabitStore
from habitflow.services.plan_applier import apply_plan
from habitflow.services.plan_generator import PlanGenerationError, generate_change_plan
from habitflow.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/change-plans/generate", response_model=GeneratePlanResponse, tags=["change-plans"])
def generate_plan(
    payload: GeneratePlanRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> GeneratePlanResponse:
    """Turn a free-text request into a reviewable change plan. Nothing is saved."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/change-plans/generate",
        "user_id": str(payload.user_id),
        "request_id": request_id,
    }
    start = perf_counter()
    with trace("change_plan.generate_request", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        habits = SqlHabitStore(db, payload.user_id).list()
        try:
            plan = generate_change_plan(payload.intent, habits, request_id=request_id)
        except PlanGenerationError as exc:
            log_metric("change_plan.generate_request.failure", 1, metadata={"user_id": str(payload.user_id)})
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    log_metric(
        "change_plan.generate_request.latency_ms",
        (perf_counter() - start) * 1000,
        metadata={"user_id": str(payload.user_id)},
    )
    return GeneratePlanResponse(user_id=payload.user_id, plan=plan, request_id=request_id or "")


@router.post("/change-plans/apply", response_model=ApplyPlanResponse, tags=["change-plans"])
def apply_change_plan(
    payload: ApplyPlanRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ApplyPlanResponse:
    """
    Apply a change plan step by step.

    A failing step stops the run; earlier steps stay committed and the response
    says which step failed. The run is recorded in the agent action log.
    """
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/change-plans/apply",
        "user_id": str(payload.user_id),
        "add": len(payload.plan.add),
        "modify": len(payload.plan.modify),
        "delete": len(payload.plan.delete),
        "request_id": request_id,
    }
    try:
        plan = payload.plan.to_domain()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    try:
        with trace("change_plan.apply", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
            result = apply_plan(plan, SqlHabitStore(db, payload.user_id))
            get_or_create_user(db, payload.user_id)
            db.add(
                AgentActionLog(
                    user_id=payload.user_id,
                    action_type="habit_plan_applied",
                    action_payload={
                        "summary": plan.summary,
                        "committed": result.committed,
                        "failed_step": result.failed_step.index if result.failed_step else None,
                        "steps": [
                            {
                                "index": step.index,
                                "action": step.action,
                                "habit_id": str(step.habit_id),
                                "status": step.status,
                                "error": step.error,
                            }
                            for step in result.steps
                        ],
                        "request_id": request_id,
                    },
                    reason=result.describe(),
                    undo_available=False,
                )
            )
            db.commit()
    except Exception:
        db.rollback()
        raise

    log_metric("change_plan.apply.committed", result.committed, metadata={"user_id": str(payload.user_id)})
    if not result.ok:
        log_metric("change_plan.apply.partial_failure", 1, metadata={"user_id": str(payload.user_id)})
    return ApplyPlanResponse.from_result(payload.user_id, result, request_id or "")
