"""Adaptation event ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from habitflow.db.base import Base
from habitflow.db.types import JSONBCompat


class AdaptationEventRecord(Base):
    __tablename__ = "adaptation_events"
    __table_args__ = (Index("ix_adaptation_events_user_id_date", "user_id", "event_date"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_date = Column(Date, nullable=False)
    event_kind = Column(String(length=20), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_time = Column(Integer, nullable=False)
    duration_min = Column(Integer, nullable=False)
    # {"<habit uuid>": {"original_start": 570, "new_start": 615, "rationale": "..."}}
    shifted_schedule = Column(JSONBCompat, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
