from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitflow.db.deps import get_db
from habitflow.db.models.habit import Habit as HabitRow
from habitflow.db.models.user import User
from habitflow.main import app
from habitflow.services.day_schedule import DaySchedule
from habitflow.services.habit_model import Habit, Weekday
from habitflow.services.habit_store import SqlHabitStore

MONDAY = date(2026, 10, 19)


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

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _run_payload(user_id, **overrides) -> dict:
    payload = {
        "user_id": str(user_id),
        "name": "Run",
        "category": "Health",
        "active_days": ["Mon"],
        "schedule": {
            "Mon": {
                "start_time": "07:00",
                "pre_duration_minutes": 5,
                "core_duration_minutes": 30,
                "reward_duration_minutes": 5,
            }
        },
        "cue": "shoes by the door",
    }
    payload.update(overrides)
    return payload


def _meditate_payload(user_id, start: str, end: str) -> dict:
    return {
        "user_id": str(user_id),
        "name": "Meditate",
        "active_days": ["Mon"],
        "schedule": {"Mon": {"start_time": start, "end_time": end}},
    }


def test_create_and_fetch_habit(client):
    test_client, _ = client
    user_id = uuid4()

    resp = test_client.post("/habits", json=_run_payload(user_id))

    assert resp.status_code == 201
    body = resp.json()
    window = body["schedule"]["Mon"]
    assert window["end_time"] == "07:40"
    assert window["total_duration_minutes"] == 40
    assert body["streak"] == 0

    fetched = test_client.get(f"/habits/{body['id']}", params={"user_id": str(user_id)})
    assert fetched.status_code == 200
    assert fetched.json()["cue"] == "shoes by the door"

    listing = test_client.get("/habits", params={"user_id": str(user_id)})
    assert [item["name"] for item in listing.json()] == ["Run"]


def test_overlapping_habit_is_rejected_with_conflict_details(client):
    test_client, session_factory = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()

    resp = test_client.post("/habits", json=_meditate_payload(user_id, "07:20", "07:50"))

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["day"] == "Mon"
    assert detail["habit_id"] == run["id"]
    assert detail["habit_name"] == "Run"

    session = session_factory()
    try:
        assert len(SqlHabitStore(session, user_id).list()) == 1
    finally:
        session.close()


def test_adjacent_habit_is_accepted(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post("/habits", json=_run_payload(user_id))

    resp = test_client.post("/habits", json=_meditate_payload(user_id, "07:45", "08:00"))

    assert resp.status_code == 201
    assert resp.json()["schedule"]["Mon"]["total_duration_minutes"] == 15


def test_conflict_check_does_not_save(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post("/habits", json=_run_payload(user_id))

    resp = test_client.post("/habits/conflicts/check", json=_meditate_payload(user_id, "07:20", "07:50"))

    assert resp.status_code == 200
    assert resp.json()["conflict"]["habit_name"] == "Run"
    listing = test_client.get("/habits", params={"user_id": str(user_id)})
    assert len(listing.json()) == 1


def test_validation_errors_return_422(client):
    test_client, _ = client
    user_id = uuid4()

    assert test_client.post("/habits", json=_run_payload(user_id, name="")).status_code == 422
    assert test_client.post("/habits", json=_run_payload(user_id, active_days=[])).status_code == 422
    assert test_client.post("/habits", json=_run_payload(user_id, name="   ")).status_code == 422
    bad_clock = _run_payload(user_id, schedule={"Mon": {"start_time": "7am"}})
    assert test_client.post("/habits", json=bad_clock).status_code == 422
    assert test_client.get("/habits", params={"user_id": str(user_id)}).json() == []


def test_overlapping_habit_can_still_be_archived(client):
    test_client, session_factory = client
    user_id = uuid4()
    test_client.post("/habits", json=_run_payload(user_id))
    meditate = Habit(
        name="Meditate",
        active_days=(Weekday.MON,),
        schedule={Weekday.MON: DaySchedule.build(7 * 60 + 20, core=30)},
    )
    session = session_factory()
    try:
        SqlHabitStore(session, user_id).put(meditate)
    finally:
        session.close()

    archived = {**_meditate_payload(user_id, "07:20", "07:50"), "archived": True}
    resp = test_client.put(f"/habits/{meditate.id}", json=archived)

    assert resp.status_code == 200
    assert resp.json()["archived"] is True

    unarchived = _meditate_payload(user_id, "07:20", "07:50")
    assert test_client.put(f"/habits/{meditate.id}", json=unarchived).status_code == 409

def test_update_keeps_completion_history_and_ignores_self(client):
    test_client, _ = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()
    test_client.post(
        f"/habits/{run['id']}/completion",
        json={"user_id": str(user_id), "date": MONDAY.isoformat()},
    )

    moved = _run_payload(user_id, schedule={"Mon": {"start_time": "07:10", "core_duration_minutes": 30}})
    resp = test_client.put(f"/habits/{run['id']}", json=moved)

    assert resp.status_code == 200
    body = resp.json()
    assert body["schedule"]["Mon"]["start_time"] == "07:10"
    assert body["completed_dates"] == [MONDAY.isoformat()]
    assert body["streak"] == 1


def test_unknown_or_foreign_habit_returns_404(client):
    test_client, _ = client
    owner = uuid4()
    run = test_client.post("/habits", json=_run_payload(owner)).json()

    assert test_client.get(f"/habits/{uuid4()}", params={"user_id": str(owner)}).status_code == 404
    assert test_client.get(f"/habits/{run['id']}", params={"user_id": str(uuid4())}).status_code == 404
    assert test_client.put(f"/habits/{run['id']}", json=_run_payload(uuid4())).status_code == 404


def test_delete_habit(client):
    test_client, _ = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()

    resp = test_client.delete(f"/habits/{run['id']}", params={"user_id": str(user_id)})

    assert resp.status_code == 200
    assert resp.json()["deleted"] is True
    again = test_client.delete(f"/habits/{run['id']}", params={"user_id": str(user_id)})
    assert again.status_code == 404


def test_schedule_field_edit_recomputes_window(client):
    test_client, _ = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()

    resp = test_client.patch(
        f"/habits/{run['id']}/schedule/Mon",
        json={"user_id": str(user_id), "field": "end_time", "value": "08:00"},
    )

    assert resp.status_code == 200
    window = resp.json()["schedule"]["Mon"]
    assert window["total_duration_minutes"] == 60
    assert window["core_duration_minutes"] == 50

    resp = test_client.patch(
        f"/habits/{run['id']}/schedule/Mon",
        json={"user_id": str(user_id), "field": "start_time", "value": "06:00"},
    )
    window = resp.json()["schedule"]["Mon"]
    assert window["end_time"] == "07:00"


def test_schedule_field_edit_rejects_bad_values(client):
    test_client, _ = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()
    url = f"/habits/{run['id']}/schedule/Mon"

    assert test_client.patch(url, json={"user_id": str(user_id), "field": "end_time", "value": 30}).status_code == 422
    assert test_client.patch(url, json={"user_id": str(user_id), "field": "pre_duration_minutes", "value": -1}).status_code == 422
    assert test_client.patch(url, json={"user_id": str(user_id), "field": "start_time", "value": "25:00"}).status_code == 422
    tuesday = f"/habits/{run['id']}/schedule/Tue"
    assert test_client.patch(tuesday, json={"user_id": str(user_id), "field": "core_duration_minutes", "value": 20}).status_code == 422


def test_schedule_field_edit_detects_conflicts(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post("/habits", json=_run_payload(user_id))
    meditate = test_client.post("/habits", json=_meditate_payload(user_id, "07:45", "08:00")).json()

    resp = test_client.patch(
        f"/habits/{meditate['id']}/schedule/Mon",
        json={"user_id": str(user_id), "field": "start_time", "value": "07:30"},
    )

    assert resp.status_code == 409


def test_completion_toggle_updates_streak(client):
    test_client, _ = client
    user_id = uuid4()
    run = test_client.post("/habits", json=_run_payload(user_id)).json()
    url = f"/habits/{run['id']}/completion"

    first = test_client.post(url, json={"user_id": str(user_id), "date": MONDAY.isoformat()})
    assert first.json()["completed"] is True
    assert first.json()["streak"] == 1

    second = test_client.post(url, json={"user_id": str(user_id), "date": MONDAY.isoformat()})
    assert second.json()["completed"] is False
    assert second.json()["streak"] == 0


def test_category_filter_and_archived_habits(client):
    test_client, _ = client
    user_id = uuid4()
    test_client.post("/habits", json=_run_payload(user_id))
    test_client.post(
        "/habits",
        json={
            "user_id": str(user_id),
            "name": "Flashcards",
            "category": "Study",
            "active_days": ["Tue"],
            "default_time": "20:00",
            "archived": True,
        },
    )

    study = test_client.get("/habits", params={"user_id": str(user_id), "category": "Study"})
    assert study.json() == []
    everything = test_client.get(
        "/habits",
        params={"user_id": str(user_id), "category": "Study", "include_archived": "true"},
    )
    assert [item["name"] for item in everything.json()] == ["Flashcards"]
