"""
Tests for event lifecycle operations
"""

import pytest
from datetime import timedelta
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.exceptions import NotFoundError
from app.models import Attachment, Event, EventState, Message, MessageType, OutboxEntry, Reservation
from app.schemas.event import EventCreate
from app.schemas.reservation import User
from app.services.event_service import EventService
from app.services.reservation_service import ReservationService
from app.utils.time import utcnow

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_events.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ALICE = User(id=1, user_name1="Alice")
BOB = User(id=2, user_name1="Bob")

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

def event_data(name="Art class", days_ahead=4, max_adults=2, max_children=0):
    ts = utcnow().replace(second=0, microsecond=0) + timedelta(days=days_ahead)
    return EventCreate(
        name=name,
        link="https://example.com/art",
        max_adults=max_adults,
        max_children=max_children,
        max_adults_per_reservation=2,
        max_children_per_reservation=0,
        ts=ts,
        remind_at=ts - timedelta(days=1),
    )

def reminder_entries(db, event_id):
    return db.query(OutboxEntry).join(Message, Message.id == OutboxEntry.message_id).filter(
        Message.event_id == event_id,
        Message.type == int(MessageType.REMINDER)
    ).all()

def prompts(db, event_id):
    return db.query(Message).filter(
        Message.event_id == event_id,
        Message.type == int(MessageType.WAITING_LIST_PROMPT)
    ).count()

def test_create_event_schedules_reminder(db_session):
    data = event_data()

    event_id = EventService.create_event(db_session, data)

    event = db_session.query(Event).filter(Event.id == event_id).one()
    assert event.state == int(EventState.OPEN)
    entries = reminder_entries(db_session, event_id)
    assert [e.send_at for e in entries] == [data.remind_at]
    reminder = db_session.query(Message).filter(Message.event_id == event_id).one()
    assert reminder.waiting_list is False
    assert "Art class" in reminder.text

def test_update_event_moves_reminder(db_session):
    event_id = EventService.create_event(db_session, event_data())
    changed = event_data(name="Art class (moved)", days_ahead=6)

    EventService.update_event(db_session, event_id, changed)

    event = db_session.query(Event).filter(Event.id == event_id).one()
    assert event.name == "Art class (moved)"
    assert event.ts == changed.ts
    assert [e.send_at for e in reminder_entries(db_session, event_id)] == [changed.remind_at]

def test_update_unknown_event(db_session):
    with pytest.raises(NotFoundError):
        EventService.update_event(db_session, 404, event_data())

def test_get_event_remembers_current_event(db_session):
    event_id = EventService.create_event(db_session, event_data())
    other_id = EventService.create_event(db_session, event_data(name="Pottery", days_ahead=5))
    ReservationService.sign_up(db_session, event_id, ALICE, 2, 0, False)

    stats = EventService.get_event(db_session, event_id, ALICE.id)

    assert stats.adults.reserved == 2
    assert stats.adults.my_reservation == 2
    assert stats.vacancy.adults == 0
    assert EventService.get_current_event(db_session, ALICE.id) == event_id

    EventService.get_event(db_session, other_id, ALICE.id)
    assert EventService.get_current_event(db_session, ALICE.id) == other_id
    assert EventService.get_current_event(db_session, BOB.id) is None

def test_get_event_unknown(db_session):
    with pytest.raises(NotFoundError):
        EventService.get_event(db_session, 404, ALICE.id)

def test_get_events_ordered_by_time_and_paged(db_session):
    late = EventService.create_event(db_session, event_data(name="Late", days_ahead=9))
    early = EventService.create_event(db_session, event_data(name="Early", days_ahead=1))
    middle = EventService.create_event(db_session, event_data(name="Middle", days_ahead=5))

    assert [e.id for e in EventService.get_events(db_session, ALICE.id)] == [early, middle, late]
    assert [e.id for e in EventService.get_events(db_session, ALICE.id, page=1, per_page=2)] == [late]

def test_get_event_name(db_session):
    data = event_data()
    event_id = EventService.create_event(db_session, data)

    assert EventService.get_event_name(db_session, event_id) == f"{data.ts:%d.%m.%Y %H:%M} Art class"
    with pytest.raises(NotFoundError):
        EventService.get_event_name(db_session, 404)

def test_change_event_state(db_session):
    event_id = EventService.create_event(db_session, event_data())

    EventService.change_event_state(db_session, event_id, EventState.CLOSED)

    assert EventService.get_event(db_session, event_id, ALICE.id).state == EventState.CLOSED
    with pytest.raises(NotFoundError):
        EventService.change_event_state(db_session, 404, EventState.OPEN)

def test_raising_limits_of_full_event_prompts_waiting_list(db_session):
    event_id = EventService.create_event(db_session, event_data())
    ReservationService.sign_up(db_session, event_id, ALICE, 2, 0, False)
    ReservationService.sign_up(db_session, event_id, BOB, 1, 0, True)

    EventService.set_event_limits(db_session, event_id, 3, 0)

    assert prompts(db_session, event_id) == 1
    assert db_session.query(Event.max_adults).filter(Event.id == event_id).scalar() == 3

def test_raising_limits_with_vacancy_does_not_prompt(db_session):
    event_id = EventService.create_event(db_session, event_data())
    ReservationService.sign_up(db_session, event_id, ALICE, 1, 0, False)

    EventService.set_event_limits(db_session, event_id, 5, 0)

    assert prompts(db_session, event_id) == 0

def test_set_limits_of_unknown_event(db_session):
    with pytest.raises(NotFoundError):
        EventService.set_event_limits(db_session, 404, 1, 1)

def test_delete_event_removes_everything(db_session):
    event_id = EventService.create_event(db_session, event_data())
    ReservationService.sign_up(db_session, event_id, ALICE, 1, 0, False)
    ReservationService.add_attachment(db_session, event_id, ALICE.id, "bringing paint")
    EventService.set_current_event(db_session, ALICE.id, event_id)

    errors = EventService.delete_event(db_session, event_id)

    assert errors == []
    assert db_session.query(Event).count() == 0
    assert db_session.query(Reservation).count() == 0
    assert db_session.query(Attachment).count() == 0
    assert db_session.query(Message).count() == 0
    assert db_session.query(OutboxEntry).count() == 0
    assert EventService.get_current_event(db_session, ALICE.id) is None

def test_delete_event_continues_after_failure(db_session, monkeypatch):
    event_id = EventService.create_event(db_session, event_data())
    ReservationService.sign_up(db_session, event_id, ALICE, 1, 0, False)
    ReservationService.add_attachment(db_session, event_id, ALICE.id, "bringing paint")

    real_commit = db_session.commit
    calls = {"count": 0}

    def flaky_commit():
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)

    errors = EventService.delete_event(db_session, event_id)

    assert len(errors) == 1
    assert errors[0].startswith("attachments")
    assert db_session.query(Event).count() == 0
    assert db_session.query(Reservation).count() == 0
    assert db_session.query(Attachment).count() == 1
