"""Schemas for job operations endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    job: Literal["habit_reminders"] = "habit_reminders"
    user_id: Optional[UUID] = None
    at: Optional[datetime] = None


class JobRunResponse(BaseModel):
    job: str
    users_processed: int
    reminders_sent: int
    request_id: str
