"""Batch job runners for habit reminders."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from habitflow.db.models.habit import Habit as HabitRow
from habitflow.services.habit_reminders import due_reminders
from habitflow.services.habit_store import SqlAdaptationLog, SqlHabitStore
from habitflow.services.notifications.hooks import notify_habit_due


logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    reminders_sent: int


def _active_user_ids(db: Session) -> List[UUID]:
    rows = (
        db.query(HabitRow.user_id)
        .filter(HabitRow.archived.is_(False))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]


def run_reminders_for_user(db: Session, user_id: UUID, now: datetime) -> int:
    """Send reminders for every habit of ``user_id`` due at ``now``; return the count."""
    habits = SqlHabitStore(db, user_id).list()
    adaptation_log = SqlAdaptationLog(db, user_id)
    events = adaptation_log.list(now.date() - timedelta(days=1)) + adaptation_log.list(now.date())
    slots = due_reminders(habits, events, now)
    for slot in slots:
        notify_habit_due(db, user_id, slot, None)
    return len(slots)


def run_reminders_for_all_users(
    db: Session,
    now: datetime,
    *,
    user_ids: Optional[Iterable[UUID]] = None,
) -> JobRunResult:
    ids = _active_user_ids(db) if user_ids is None else list(dict.fromkeys(user_ids))
    users_processed = 0
    reminders_sent = 0
    for uid in ids:
        try:
            reminders_sent += run_reminders_for_user(db, uid, now)
        except Exception:  # pragma: no cover - defensive guard
            logger.exception("Reminder job failed for user %s", uid)
            db.rollback()
            continue
        users_processed += 1
    return JobRunResult(users_processed=users_processed, reminders_sent=reminders_sent)
