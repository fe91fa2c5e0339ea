"""Habit ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from habitflow.db.base import Base
from habitflow.db.types import JSONBCompat


class Habit(Base):
    __tablename__ = "habits"
    __table_args__ = (
        Index("ix_habits_user_id", "user_id"),
        Index("ix_habits_category", "category"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    category = Column(String(length=50), nullable=False, server_default=sa_text("'General'"))
    # Weekday tags, e.g. ["Mon", "Wed"].
    active_days = Column(JSONBCompat, nullable=False, default=list)
    # {"Mon": {"start_time": 420, "end_time": 460, ...}} in minutes since midnight.
    schedule = Column(JSONBCompat, nullable=False, default=dict)
    default_time = Column(Integer, nullable=True)
    default_duration_min = Column(Integer, nullable=False, server_default=sa_text("30"))
    streak = Column(Integer, nullable=False, server_default=sa_text("0"))
    completed_dates = Column(JSONBCompat, nullable=False, default=list)
    excluded_dates = Column(JSONBCompat, nullable=False, default=list)
    archived = Column(Boolean, nullable=False, server_default=sa_text("false"))
    cue = Column(Text, nullable=False, server_default=sa_text("''"))
    craving = Column(Text, nullable=False, server_default=sa_text("''"))
    response = Column(Text, nullable=False, server_default=sa_text("''"))
    reward = Column(Text, nullable=False, server_default=sa_text("''"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
