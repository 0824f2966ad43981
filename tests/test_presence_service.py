"""
Tests for presence confirmation and group leaders
"""

import pytest
from datetime import timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import Event, EventState, GroupLeaderMark, PresenceRecord, Reservation
from app.services.presence_service import PresenceService
from app.services.reservation_service import ReservationService
from app.utils.time import utcnow

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_presence.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

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
def event_id(db_session):
    ts = utcnow() + timedelta(hours=1)
    event = Event(
        name="Harbour walk",
        link="",
        max_adults=20,
        max_children=20,
        max_adults_per_reservation=4,
        max_children_per_reservation=4,
        ts=ts,
        remind_at=ts - timedelta(hours=3),
        state=int(EventState.OPEN),
    )
    db_session.add(event)
    db_session.commit()
    return event.id

def reserve(db, event_id, user_id, name, waiting_list=False):
    db.add(Reservation(
        event_id=event_id,
        user_id=user_id,
        user_name1=name,
        user_name2="",
        adults=1,
        children=0,
        waiting_list=waiting_list,
        ts=utcnow(),
    ))
    db.commit()

def test_confirm_presence_is_idempotent(db_session, event_id):
    assert PresenceService.confirm_presence(db_session, event_id, 1) is True
    assert PresenceService.confirm_presence(db_session, event_id, 1) is False

    assert db_session.query(PresenceRecord).count() == 1

def test_presence_list_shows_unconfirmed_active_participants(db_session, event_id):
    reserve(db_session, event_id, 1, "Zoe")
    reserve(db_session, event_id, 1, "Zoe")
    reserve(db_session, event_id, 2, "Adam")
    reserve(db_session, event_id, 3, "Mia")
    reserve(db_session, event_id, 4, "Bea", waiting_list=True)
    ReservationService.add_attachment(db_session, event_id, 1, "wheelchair")
    PresenceService.confirm_presence(db_session, event_id, 3)

    presence = PresenceService.get_presence_list(db_session, event_id)

    assert [(p.user_name1, p.reserved, p.attachment) for p in presence] == [
        ("Adam", 1, None),
        ("Zoe", 2, "wheelchair"),
    ]

def test_presence_list_paging(db_session, event_id):
    for user_id, name in enumerate(["Ann", "Ben", "Cid", "Dan", "Eve"], start=1):
        reserve(db_session, event_id, user_id, name)

    page = PresenceService.get_presence_list(db_session, event_id, page=1, per_page=2)

    assert [p.user_name1 for p in page] == ["Cid", "Dan"]

def test_everybody_confirmed_leaves_empty_list(db_session, event_id):
    reserve(db_session, event_id, 1, "Ann")
    PresenceService.confirm_presence(db_session, event_id, 1)

    assert PresenceService.get_presence_list(db_session, event_id) == []

def test_group_leader(db_session, event_id):
    assert not PresenceService.is_group_leader(db_session, event_id, 5)

    PresenceService.set_group_leader(db_session, event_id, 5)
    PresenceService.set_group_leader(db_session, event_id, 5)

    assert PresenceService.is_group_leader(db_session, event_id, 5)
    assert not PresenceService.is_group_leader(db_session, event_id + 1, 5)
    assert db_session.query(GroupLeaderMark).count() == 1
