"""No-op notification provider (logs only)."""
from __future__ import annotations

import logging
from uuid import UUID

from habitflow.services.notifications.base import NotificationResult, NotificationService


logger = logging.getLogger(__name__)


class NoopNotificationService(NotificationService):
    def notify_habit_due(
        self,
        *,
        user_id: UUID,
        habit_id: UUID,
        habit_name: str,
        start_time: str,
        cue: str,
        shifted: bool,
        request_id: str | None,
    ) -> NotificationResult:
        logger.info(
            "Notification queued (noop) habit_due user=%s habit=%s name=%r at=%s shifted=%s",
            user_id,
            habit_id,
            habit_name,
            start_time,
            shifted,
        )
        return NotificationResult(status="noop", reason="notification provider is noop")
