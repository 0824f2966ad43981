"""
Tests for the HTTP routes
"""

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base, get_db
from app.models import EventState
from app.schemas.event import EventCreate
from app.services.event_service import EventService
from app.services.presence_service import PresenceService
from app.utils.security import rate_limit_check, rate_limiter
from app.utils.time import utcnow
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def event_id(db_session):
    ts = utcnow().replace(second=0, microsecond=0) + timedelta(days=2)
    return EventService.create_event(db_session, EventCreate(
        name="City tour",
        link="https://example.com/city",
        max_adults=2,
        max_children=1,
        max_adults_per_reservation=2,
        max_children_per_reservation=1,
        ts=ts,
        remind_at=ts - timedelta(days=1),
    ))

def sign_up(client, event_id, user_id, adults=1, children=0):
    return client.post("/reservations/sign-up", json={
        "event_id": event_id,
        "user_id": user_id,
        "user_name1": f"User {user_id}",
        "adults": adults,
        "children": children,
    })

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_sign_up_goes_to_waiting_list_when_full(client, event_id):
    response = sign_up(client, event_id, 1, adults=2)
    assert response.status_code == 200
    assert response.json()["data"] == {"outcome": "inserted", "waiting_list": False}

    response = sign_up(client, event_id, 2, adults=1)
    assert response.status_code == 200
    assert response.json()["data"]["waiting_list"] is True
    assert response.json()["message"] == "Added to the waiting list"

    response = client.get(f"/events/{event_id}", params={"user_id": 2})
    data = response.json()["data"]
    assert data["vacancy"] == {"adults": 0, "children": 1}
    assert data["adults"] == {"reserved": 2, "my_reservation": 0, "my_waiting": 1}

def test_sign_up_over_personal_limit(client, event_id):
    sign_up(client, event_id, 1, adults=2)

    response = sign_up(client, event_id, 1, adults=1)

    assert response.status_code == 409
    assert response.json()["error_code"] == "rejected_capacity"

def test_sign_up_closed_event(client, db_session, event_id):
    EventService.change_event_state(db_session, event_id, EventState.CLOSED)

    response = sign_up(client, event_id, 1)

    assert response.status_code == 422
    assert response.json()["error_code"] == "rejected_closed_or_expired"

def test_unknown_event(client, db_session):
    response = client.get("/events/999")
    assert response.status_code == 404
    assert response.json()["error_code"] == "NotFoundError"

    response = sign_up(client, 999, 1)
    assert response.status_code == 404

def test_list_events(client, event_id):
    response = client.get("/events", params={"user_id": 1})

    assert response.status_code == 200
    assert [e["id"] for e in response.json()["data"]] == [event_id]

def test_cancel_and_wontgo(client, event_id):
    sign_up(client, event_id, 1)
    sign_up(client, event_id, 1)

    response = client.post("/reservations/cancel", json={"event_id": event_id, "user_id": 1, "adults": 2})
    assert response.status_code == 404

    response = client.post("/reservations/cancel", json={"event_id": event_id, "user_id": 1, "adults": 1})
    assert response.status_code == 200

    response = client.post("/reservations/wontgo", json={"event_id": event_id, "user_id": 1})
    assert response.json()["data"] == {"deleted": 1}

def test_attachment_requires_reservation(client, event_id):
    payload = {"event_id": event_id, "user_id": 1, "text": "arriving late"}

    assert client.post("/reservations/attachment", json=payload).status_code == 409

    sign_up(client, event_id, 1)
    assert client.post("/reservations/attachment", json=payload).status_code == 200

def test_participants_are_private_by_default(client, event_id, monkeypatch):
    sign_up(client, event_id, 1)
    monkeypatch.setattr(settings, "PUBLIC_LISTS", False)

    response = client.get(f"/events/{event_id}/participants", params={"user_id": 2})
    assert response.status_code == 403

    monkeypatch.setattr(settings, "PUBLIC_LISTS", True)
    response = client.get(f"/events/{event_id}/participants", params={"user_id": 2})
    assert response.status_code == 200
    assert [p["user_id"] for p in response.json()["data"]] == [1]

def test_participants_visible_to_admin(client, event_id, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_IDS", "77")

    response = client.get(f"/events/{event_id}/participants", params={"user_id": 77})

    assert response.status_code == 200
    assert response.json()["data"] == []

def test_presence_confirmation_by_group_leader(client, db_session, event_id):
    sign_up(client, event_id, 1)
    payload = {"event_id": event_id, "user_id": 1, "confirmed_by": 5}

    assert client.post("/reservations/presence", json=payload).status_code == 403

    PresenceService.set_group_leader(db_session, event_id, 5)
    response = client.post("/reservations/presence", json=payload)
    assert response.status_code == 200
    assert response.json()["data"] == {"recorded": True}

def test_event_messages(client, event_id):
    response = client.get(f"/events/{event_id}/messages")

    # the reminder is not an organizer message
    assert response.status_code == 200
    assert response.json()["data"] == []

def test_rate_limit(client, event_id, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 1)

    assert sign_up(client, event_id, 1).status_code == 200
    assert sign_up(client, event_id, 2).status_code == 429

def test_rate_limiter_forgets_idle_clients():
    rate_limiter.clear()

    assert rate_limit_check("10.0.0.1", limit=1, now=1000.0)
    assert not rate_limit_check("10.0.0.1", limit=1, now=1030.0)
    assert rate_limit_check("10.0.0.2", limit=1, now=1061.0)

    assert "10.0.0.1" not in rate_limiter
    assert list(rate_limiter) == ["10.0.0.2"]
    # a forgotten client starts a fresh window
    assert rate_limit_check("10.0.0.1", limit=1, now=1062.0)
    rate_limiter.clear()

def test_presence_list_for_group_leader(client, db_session, event_id):
    sign_up(client, event_id, 1)
    sign_up(client, event_id, 2)
    params = {"event_id": event_id, "user_id": 5}

    assert client.get("/reservations/presence", params=params).status_code == 403

    PresenceService.set_group_leader(db_session, event_id, 5)
    PresenceService.confirm_presence(db_session, event_id, 2)
    response = client.get("/reservations/presence", params=params)
    assert response.status_code == 200
    assert [p["user_id"] for p in response.json()["data"]] == [1]
