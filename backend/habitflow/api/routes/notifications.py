"""Notification configuration routes."""
from __future__ import annotations

from fastapi import APIRouter, Request

from habitflow.core.config import settings
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace


router = APIRouter()


@router.get("/notifications/config", tags=["notifications"])
def get_notifications_config(request: Request) -> dict:
    """Report whether habit reminders are dispatched and through which provider."""
    request_id = getattr(request.state, "request_id", None)
    with trace(
        "notifications.config",
        metadata={"provider": settings.notifications_provider},
        request_id=request_id,
    ):
        log_metric("notifications.config.success", 1, metadata={"provider": settings.notifications_provider})
        return {
            "enabled": settings.notifications_enabled,
            "provider": settings.notifications_provider,
            "events": ["habit_due"],
            "scheduler_enabled": settings.scheduler_enabled,
            "request_id": request_id or "",
        }
