from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitflow.db.deps import get_db
from habitflow.db.models.adaptation_event import AdaptationEventRecord
from habitflow.db.models.habit import Habit as HabitRow
from habitflow.db.models.user import User
from habitflow.main import app

MONDAY = date(2026, 10, 19)
ALL_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    HabitRow.__table__.create(bind=engine)
    AdaptationEventRecord.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create(test_client, user_id, name: str, start: str) -> dict:
    resp = test_client.post(
        "/habits",
        json={
            "user_id": str(user_id),
            "name": name,
            "active_days": ALL_DAYS,
            "default_time": start,
            "default_duration_minutes": 20,
        },
    )
    assert resp.status_code == 201
    return resp.json()


def test_boss_meeting_shifts_lunch_for_that_day_only(client):
    user_id = uuid4()
    lunch = _create(client, user_id, "Lunch", "09:30")
    breakfast = _create(client, user_id, "Breakfast", "08:00")

    resp = client.post(
        "/adaptations",
        json={
            "user_id": str(user_id),
            "date": MONDAY.isoformat(),
            "description": "Boss meeting",
            "start_time": "09:00",
            "duration_minutes": 45,
        },
    )

    assert resp.status_code == 201
    event_body = resp.json()
    assert list(event_body["shifted_schedule"]) == [lunch["id"]]
    assert event_body["shifted_schedule"][lunch["id"]]["new_start"] == "10:15"
    assert event_body["shifted_schedule"][lunch["id"]]["shift_minutes"] == 45

    day = client.get(f"/schedule/{MONDAY.isoformat()}", params={"user_id": str(user_id)}).json()
    slots = {slot["habit_name"]: slot for slot in day["slots"]}
    assert slots["Lunch"]["start_time"] == "10:15"
    assert slots["Lunch"]["base_start_time"] == "09:30"
    assert slots["Lunch"]["rationales"] == ["shifted by 45m due to disruption"]
    assert slots["Breakfast"]["start_time"] == "08:00"
    assert slots["Breakfast"]["shifted"] is False

    base = client.get(f"/habits/{lunch['id']}", params={"user_id": str(user_id)}).json()
    assert base["default_time"] == "09:30"
    assert breakfast["default_time"] == "08:00"

    tuesday = client.get("/schedule/2026-10-20", params={"user_id": str(user_id)}).json()
    assert {slot["habit_name"]: slot["start_time"] for slot in tuesday["slots"]}["Lunch"] == "09:30"


def test_second_disruption_moves_habits_already_shifted_into_it(client):
    user_id = uuid4()
    _create(client, user_id, "Lunch", "09:30")
    _create(client, user_id, "Snack", "10:05")
    base = {"user_id": str(user_id), "date": MONDAY.isoformat()}

    first = client.post("/adaptations", json={**base, "start_time": "09:00", "duration_minutes": 45})
    second = client.post("/adaptations", json={**base, "start_time": "10:00", "duration_minutes": 30})

    assert first.status_code == 201
    assert second.status_code == 201
    assert len(second.json()["shifted_schedule"]) == 2

    day = client.get(f"/schedule/{MONDAY.isoformat()}", params={"user_id": str(user_id)}).json()
    assert [(slot["habit_name"], slot["start_time"]) for slot in day["slots"]] == [
        ("Lunch", "10:45"),
        ("Snack", "11:20"),
    ]

def test_events_are_listed_per_date(client):
    user_id = uuid4()
    _create(client, user_id, "Lunch", "12:00")
    client.post(
        "/adaptations",
        json={
            "user_id": str(user_id),
            "date": MONDAY.isoformat(),
            "event_kind": "session",
            "start_time": "11:00",
            "duration_minutes": 25,
        },
    )

    listed = client.get("/adaptations", params={"user_id": str(user_id), "date": MONDAY.isoformat()}).json()

    assert len(listed["events"]) == 1
    assert listed["events"][0]["event_kind"] == "session"
    assert listed["events"][0]["shifted_schedule"] == {}
    other_day = client.get("/adaptations", params={"user_id": str(user_id), "date": "2026-10-20"}).json()
    assert other_day["events"] == []


def test_invalid_event_is_rejected(client):
    user_id = uuid4()
    base = {"user_id": str(user_id), "date": MONDAY.isoformat()}

    assert client.post("/adaptations", json={**base, "start_time": "9", "duration_minutes": 10}).status_code == 422
    assert client.post("/adaptations", json={**base, "start_time": "09:00", "duration_minutes": 0}).status_code == 422
