"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass
class NotificationResult:
    status: str
    reason: str


class NotificationService:
    """Base interface for notification providers."""

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
        raise NotImplementedError
