"""
Repository layer: the aggregate queries the reservation engine runs against the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.models import Attachment, BlacklistEntry, Event, EventState, Reservation
from app.schemas.event import Counter, EventStats


def paginate(query: Query, page: int, per_page: int) -> Query:
    """Apply zero-based paging; `per_page == 0` returns everything"""
    if per_page <= 0:
        return query
    return query.limit(per_page).offset(page * per_page)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_by_id(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def _sums(db: Session, *criteria):
        return db.query(
            Reservation.event_id.label("event_id"),
            func.sum(Reservation.adults).label("adults"),
            func.sum(Reservation.children).label("children"),
        ).filter(*criteria).group_by(Reservation.event_id).subquery()

    @staticmethod
    def _stats_query(db: Session, user_id: int) -> Query:
        total = EventRepo._sums(db, Reservation.waiting_list.is_(False))
        mine = EventRepo._sums(db, Reservation.waiting_list.is_(False), Reservation.user_id == user_id)
        waiting = EventRepo._sums(db, Reservation.waiting_list.is_(True), Reservation.user_id == user_id)
        return db.query(
            Event,
            total.c.adults, total.c.children,
            mine.c.adults, mine.c.children,
            waiting.c.adults, waiting.c.children,
        ).outerjoin(total, total.c.event_id == Event.id) \
         .outerjoin(mine, mine.c.event_id == Event.id) \
         .outerjoin(waiting, waiting.c.event_id == Event.id)

    @staticmethod
    def _to_stats(row) -> EventStats:
        event, adults, children, my_adults, my_children, wait_adults, wait_children = row
        # missing aggregates mean nothing reserved
        return EventStats(
            id=event.id,
            name=event.name,
            link=event.link,
            max_adults=event.max_adults,
            max_children=event.max_children,
            max_adults_per_reservation=event.max_adults_per_reservation,
            max_children_per_reservation=event.max_children_per_reservation,
            ts=event.ts,
            state=EventState(event.state),
            adults=Counter(reserved=adults or 0, my_reservation=my_adults or 0, my_waiting=wait_adults or 0),
            children=Counter(reserved=children or 0, my_reservation=my_children or 0, my_waiting=wait_children or 0),
        )

    @staticmethod
    def stats(db: Session, event_id: int, user_id: int) -> Optional[EventStats]:
        row = EventRepo._stats_query(db, user_id).filter(Event.id == event_id).first()
        return EventRepo._to_stats(row) if row else None

    @staticmethod
    def list_stats(db: Session, user_id: int, page: int, per_page: int) -> List[EventStats]:
        query = EventRepo._stats_query(db, user_id).order_by(Event.ts, Event.id)
        return [EventRepo._to_stats(row) for row in paginate(query, page, per_page).all()]


# -------- Reservation repository --------

class ReservationRepo:
    @staticmethod
    def active_totals(db: Session, event_id: int) -> Tuple[int, int]:
        adults, children = db.query(
            func.sum(Reservation.adults), func.sum(Reservation.children)
        ).filter(
            Reservation.event_id == event_id,
            Reservation.waiting_list.is_(False)
        ).one()
        return adults or 0, children or 0

    @staticmethod
    def has_time_conflict(db: Session, event_id: int, event_ts: datetime, user_id: int) -> bool:
        """True if the user holds a reservation for another event at the same time"""
        return db.query(Reservation.id).join(Event, Event.id == Reservation.event_id).filter(
            Event.ts == event_ts,
            Event.id != event_id,
            Reservation.user_id == user_id
        ).first() is not None

    @staticmethod
    def promote_oldest_waiting(db: Session, event_id: int, user_id: int, adults: int, children: int) -> bool:
        reservation = db.query(Reservation).filter(
            Reservation.event_id == event_id,
            Reservation.user_id == user_id,
            Reservation.waiting_list.is_(True),
            Reservation.adults == adults,
            Reservation.children == children
        ).order_by(Reservation.ts, Reservation.id).first()
        if reservation is None:
            return False
        reservation.waiting_list = False
        return True

    @staticmethod
    def delete_one(db: Session, event_id: int, user_id: int, adults: int) -> bool:
        """Delete one row with the given adults count, waiting-list rows first"""
        reservation = db.query(Reservation).filter(
            Reservation.event_id == event_id,
            Reservation.user_id == user_id,
            Reservation.adults == adults
        ).order_by(Reservation.waiting_list.desc(), Reservation.id).first()
        if reservation is None:
            return False
        db.delete(reservation)
        return True

    @staticmethod
    def delete_for_event(db: Session, event_id: int, user_id: int) -> int:
        return db.query(Reservation).filter(
            Reservation.event_id == event_id,
            Reservation.user_id == user_id
        ).delete(synchronize_session=False)

    @staticmethod
    def delete_all(db: Session, user_id: int) -> int:
        return db.query(Reservation).filter(Reservation.user_id == user_id).delete(synchronize_session=False)

    @staticmethod
    def holds_any(db: Session, event_id: int, user_id: int) -> bool:
        return db.query(Reservation.id).filter(
            Reservation.event_id == event_id,
            Reservation.user_id == user_id
        ).first() is not None

    @staticmethod
    def user_names(db: Session, user_id: int) -> Optional[Tuple[str, str]]:
        row = db.query(Reservation.user_name1, Reservation.user_name2).filter(
            Reservation.user_id == user_id
        ).first()
        return (row.user_name1, row.user_name2) if row else None


# -------- Blacklist repository --------

class BlacklistRepo:
    @staticmethod
    def contains(db: Session, user_id: int) -> bool:
        return db.query(BlacklistEntry.user_id).filter(BlacklistEntry.user_id == user_id).first() is not None


# -------- Attachment repository --------

class AttachmentRepo:
    @staticmethod
    def delete(db: Session, user_id: int, event_id: Optional[int] = None) -> int:
        """Drop the user's attachments, for one event or for all of them"""
        query = db.query(Attachment).filter(Attachment.user_id == user_id)
        if event_id is not None:
            query = query.filter(Attachment.event_id == event_id)
        return query.delete(synchronize_session=False)
