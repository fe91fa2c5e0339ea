"""Tests for the SQLAlchemy-backed habit store and adaptation log."""
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitflow.db.models.adaptation_event import AdaptationEventRecord
from habitflow.db.models.habit import Habit as HabitRow
from habitflow.db.models.user import User
from habitflow.services.adaptation_engine import Disruption, apply_disruption
from habitflow.services.day_schedule import DaySchedule
from habitflow.services.habit_model import Habit, HabitCategory, Weekday
from habitflow.services.habit_store import (
    HabitNotFoundError,
    HabitStoreError,
    SqlAdaptationLog,
    SqlHabitStore,
)
from habitflow.services.plan_applier import ChangePlan, apply_plan

MONDAY = date(2026, 10, 19)


@pytest.fixture()
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover - sqlite setup
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    HabitRow.__table__.create(bind=engine)
    AdaptationEventRecord.__table__.create(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _habit(**kwargs) -> Habit:
    kwargs.setdefault("name", "Run")
    kwargs.setdefault("active_days", (Weekday.MON, Weekday.WED))
    return Habit(**kwargs)


def test_put_and_get_round_trip(session) -> None:
    store = SqlHabitStore(session, uuid4())
    habit = _habit(
        category=HabitCategory.HEALTH,
        schedule={Weekday.MON: DaySchedule.build(7 * 60, pre=5, core=30, reward=5)},
        default_time=6 * 60,
        completed_dates=(MONDAY,),
        excluded_dates=(MONDAY + timedelta(days=2),),
        cue="shoes",
    )

    store.put(habit)

    assert store.get(habit.id) == habit


def test_put_creates_owner_and_updates_existing_rows(session) -> None:
    user_id = uuid4()
    store = SqlHabitStore(session, user_id)
    habit = _habit()
    store.put(habit)
    store.put(_habit(id=habit.id, name="Sprint"))

    assert session.get(User, user_id) is not None
    assert [h.name for h in store.list()] == ["Sprint"]


def test_store_is_scoped_to_its_user(session) -> None:
    owner = SqlHabitStore(session, uuid4())
    intruder = SqlHabitStore(session, uuid4())
    habit = _habit()
    owner.put(habit)

    assert intruder.list() == []
    with pytest.raises(HabitNotFoundError):
        intruder.get(habit.id)
    with pytest.raises(HabitNotFoundError):
        intruder.delete(habit.id)
    with pytest.raises(HabitStoreError):
        intruder.put(habit)


def test_list_filters_by_category(session) -> None:
    store = SqlHabitStore(session, uuid4())
    store.put(_habit(name="Run", category=HabitCategory.HEALTH))
    store.put(_habit(name="Flashcards", category=HabitCategory.STUDY))

    assert [h.name for h in store.list(HabitCategory.STUDY)] == ["Flashcards"]


def test_delete_unknown_habit_raises(session) -> None:
    with pytest.raises(HabitNotFoundError):
        SqlHabitStore(session, uuid4()).delete(uuid4())


def test_partial_plan_keeps_committed_rows(session) -> None:
    store = SqlHabitStore(session, uuid4())
    added = _habit(name="Stretch")

    result = apply_plan(ChangePlan(add=(added,), delete=(uuid4(),)), store)

    assert result.committed == 1
    assert store.get(added.id).name == "Stretch"


def test_adaptation_log_round_trip_in_creation_order(session) -> None:
    user_id = uuid4()
    habits = SqlHabitStore(session, user_id)
    lunch = _habit(name="Lunch", default_time=9 * 60 + 30)
    habits.put(lunch)
    log = SqlAdaptationLog(session, user_id)
    first = apply_disruption(MONDAY, Disruption(9 * 60, 45, description="Boss meeting"), habits.list())
    second = apply_disruption(MONDAY, Disruption(8 * 60, 10), habits.list())
    later = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)

    log.append(MONDAY, replace(second, created_at=later))
    log.append(MONDAY, replace(first, created_at=later - timedelta(hours=1)))

    events = log.list(MONDAY)

    assert [event.id for event in events] == [first.id, second.id]
    assert events[0].shifted_schedule[lunch.id].new_start_clock == "10:15"
    assert events[0].description == "Boss meeting"
    assert events[0].created_at.tzinfo is not None
    assert log.list(MONDAY + timedelta(days=1)) == []
    assert habits.get(lunch.id).default_time == 9 * 60 + 30


def test_adaptation_log_rejects_mismatched_date(session) -> None:
    event = apply_disruption(MONDAY, Disruption(0, 10), [])

    with pytest.raises(ValueError):
        SqlAdaptationLog(session, uuid4()).append(MONDAY + timedelta(days=1), event)
