"""Notification hook utilities."""
from __future__ import annotations

import logging
from time import perf_counter
from uuid import UUID

from sqlalchemy.orm import Session

from habitflow.core.config import settings
from habitflow.db.models.agent_action_log import AgentActionLog
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.adaptation_engine import ScheduledSlot
from habitflow.services.notifications.base import NotificationResult
from habitflow.services.notifications.factory import get_notification_service
from habitflow.services.time_math import to_clock


logger = logging.getLogger(__name__)


def notify_habit_due(db: Session, user_id: UUID, slot: ScheduledSlot, request_id: str | None) -> NotificationResult:
    """Dispatch a reminder for one due slot and record the outcome."""
    habit = slot.habit
    start_time = to_clock(slot.start)
    extra = {
        "habit_id": str(habit.id),
        "habit_name": habit.name,
        "start_time": start_time,
        "shifted": slot.shifted,
    }
    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
        _record_notification_log(db, user_id, result=result, request_id=request_id, extra=extra)
        return result

    service = get_notification_service()
    metadata = {
        "user_id": str(user_id),
        "provider": settings.notifications_provider,
        **extra,
    }
    start = perf_counter()
    with trace(
        "notifications.habit_due",
        metadata=metadata,
        user_id=str(user_id),
        request_id=request_id,
    ):
        result = service.notify_habit_due(
            user_id=user_id,
            habit_id=habit.id,
            habit_name=habit.name,
            start_time=start_time,
            cue=habit.cue,
            shifted=slot.shifted,
            request_id=request_id,
        )
    duration_ms = (perf_counter() - start) * 1000
    log_metric("notifications.sent", 1, metadata={"job": "habit_due", "provider": settings.notifications_provider})
    log_metric("notifications.duration_ms", duration_ms, metadata={"job": "habit_due"})
    _record_notification_log(db, user_id, result=result, request_id=request_id, extra=extra)
    return result


def _record_notification_log(
    db: Session,
    user_id: UUID,
    *,
    result: NotificationResult,
    request_id: str | None,
    extra: dict,
) -> None:
    if result.status == "skipped":
        log_metric("notifications.skipped", 1, metadata={"job": "habit_due"})
    payload = {
        "provider": settings.notifications_provider,
        "result": result.__dict__,
        "extras": extra,
        "request_id": request_id or "",
    }
    notification_log = AgentActionLog(
        user_id=user_id,
        action_type="notification_habit_due",
        action_payload=payload,
        reason="Notification dispatched" if result.status != "skipped" else "Notification skipped",
        undo_available=False,
    )
    db.add(notification_log)
    db.commit()
