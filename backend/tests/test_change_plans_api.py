from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitflow.api.routes import change_plans as change_plans_route
from habitflow.api.schemas.change_plan import ChangePlanPayload
from habitflow.db.deps import get_db
from habitflow.db.models.agent_action_log import AgentActionLog
from habitflow.db.models.habit import Habit as HabitRow
from habitflow.db.models.user import User
from habitflow.main import app
from habitflow.services.plan_generator import PlanGenerationError


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
    AgentActionLog.__table__.create(bind=engine)

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


def _create(test_client, user_id, name: str, start: str) -> dict:
    resp = test_client.post(
        "/habits",
        json={"user_id": str(user_id), "name": name, "active_days": ["Mon"], "default_time": start},
    )
    assert resp.status_code == 201
    return resp.json()


def test_partial_failure_keeps_earlier_steps(client):
    test_client, session_factory = client
    user_id = uuid4()
    missing = uuid4()

    resp = test_client.post(
        "/change-plans/apply",
        json={
            "user_id": str(user_id),
            "plan": {
                "add": [{"name": "Stretch", "active_days": ["Mon"], "default_time": "06:30"}],
                "delete": [str(missing)],
            },
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is False
    assert body["committed"] == 1
    assert body["failed_step"] == 1
    assert [step["status"] for step in body["steps"]] == ["applied", "failed"]
    assert body["steps"][1]["habit_id"] == str(missing)

    habits = test_client.get("/habits", params={"user_id": str(user_id)}).json()
    assert [habit["name"] for habit in habits] == ["Stretch"]

    session = session_factory()
    try:
        log = session.query(AgentActionLog).filter(AgentActionLog.action_type == "habit_plan_applied").one()
    finally:
        session.close()
    assert log.action_payload["committed"] == 1
    assert log.action_payload["failed_step"] == 1


def test_modify_patches_only_named_fields(client):
    test_client, _ = client
    user_id = uuid4()
    run = _create(test_client, user_id, "Run", "07:00")

    resp = test_client.post(
        "/change-plans/apply",
        json={
            "user_id": str(user_id),
            "plan": {
                "modify": [
                    {
                        "habit_id": run["id"],
                        "patches": [
                            {"field": "default_time", "value": "06:15"},
                            {"field": "cue", "value": "alarm"},
                            {
                                "field": "day_schedule",
                                "day": "Mon",
                                "value": {"start_time": "06:00", "core_duration_minutes": 45},
                            },
                        ],
                        "rationale": "earlier",
                    }
                ],
                "summary": "Run earlier",
            },
        },
    )

    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    habit = test_client.get(f"/habits/{run['id']}", params={"user_id": str(user_id)}).json()
    assert habit["default_time"] == "06:15"
    assert habit["cue"] == "alarm"
    assert habit["schedule"]["Mon"]["end_time"] == "06:45"
    assert habit["name"] == "Run"


def test_unknown_patch_field_is_rejected(client):
    test_client, _ = client

    resp = test_client.post(
        "/change-plans/apply",
        json={
            "user_id": str(uuid4()),
            "plan": {"modify": [{"habit_id": str(uuid4()), "patches": [{"field": "colour", "value": "red"}]}]},
        },
    )

    assert resp.status_code == 422


def test_generate_returns_plan_without_saving(client, monkeypatch):
    test_client, _ = client
    user_id = uuid4()
    run = _create(test_client, user_id, "Run", "07:00")
    seen = {}

    def _fake_generate(intent, habits, *, client=None, request_id=None):
        seen["intent"] = intent
        seen["habits"] = [habit.name for habit in habits]
        return ChangePlanPayload.model_validate(
            {"delete": [run["id"]], "summary": "Drop running for now."}
        )

    monkeypatch.setattr(change_plans_route, "generate_change_plan", _fake_generate)

    resp = test_client.post("/change-plans/generate", json={"user_id": str(user_id), "intent": "stop running"})

    assert resp.status_code == 200
    assert resp.json()["plan"]["delete"] == [run["id"]]
    assert seen == {"intent": "stop running", "habits": ["Run"]}
    assert len(test_client.get("/habits", params={"user_id": str(user_id)}).json()) == 1


def test_generation_failure_returns_502(client, monkeypatch):
    test_client, _ = client

    def _failing_generate(intent, habits, *, client=None, request_id=None):
        raise PlanGenerationError("model unavailable")

    monkeypatch.setattr(change_plans_route, "generate_change_plan", _failing_generate)

    resp = test_client.post("/change-plans/generate", json={"user_id": str(uuid4()), "intent": "anything"})

    assert resp.status_code == 502
    assert resp.json()["detail"] == "model unavailable"
