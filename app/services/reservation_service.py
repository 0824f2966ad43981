"""
Reservation engine: sign-ups, cancellations, attachments and participant lists
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, StoreError
from app.models import Attachment, EventState, Reservation
from app.schemas.reservation import Participant, SignUpOutcome, User
from app.services.capacity_service import CapacityService
from app.services.outbox_service import OutboxService
from app.services.repositories import AttachmentRepo, BlacklistRepo, EventRepo, ReservationRepo, paginate
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

# Capacity checks read then write across several statements. All sign-ups,
# for every event and user, go through this one process-wide critical section.
SIGN_UP_LOCK = threading.Lock()

MAX_ATTACHMENT_LENGTH = 256


class ReservationService:
    """Service for reservation operations"""

    @staticmethod
    def sign_up(
        db: Session,
        event_id: int,
        user: User,
        adults: int,
        children: int,
        wait: bool,
        ts: Optional[datetime] = None
    ) -> SignUpOutcome:
        """Record a reservation for `user`.

        Only per-user limits are checked here. Whether the new row goes to the
        waiting list (`wait`) is decided by the caller from event vacancy.
        """
        ts = ts or utcnow()
        with SIGN_UP_LOCK:
            try:
                outcome = ReservationService._sign_up_locked(db, event_id, user, adults, children, wait, ts)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Sign up failed for user {user.id}, event {event_id}: {e}")
                raise StoreError("Failed to sign up") from e
        logger.info(f"Sign up user {user.id} event {event_id} adults={adults} children={children} wait={wait}: {outcome.value}")
        return outcome

    @staticmethod
    def _sign_up_locked(
        db: Session,
        event_id: int,
        user: User,
        adults: int,
        children: int,
        wait: bool,
        ts: datetime
    ) -> SignUpOutcome:
        stats = EventRepo.stats(db, event_id, user.id)
        if stats is None:
            raise NotFoundError("Event not found")

        if BlacklistRepo.contains(db, user.id):
            return SignUpOutcome.REJECTED_BLACKLISTED

        if ts > stats.ts or (stats.state != EventState.OPEN and not user.is_admin):
            return SignUpOutcome.REJECTED_CLOSED_OR_EXPIRED

        if ReservationRepo.has_time_conflict(db, event_id, stats.ts, user.id):
            return SignUpOutcome.REJECTED_CONFLICT

        categories = (
            (stats.adults, adults, stats.max_adults_per_reservation),
            (stats.children, children, stats.max_children_per_reservation),
        )
        for counter, requested, cap in categories:
            if counter.my_reservation + counter.my_waiting + requested <= cap:
                continue
            if counter.my_reservation + requested > cap:
                return SignUpOutcome.REJECTED_CAPACITY
            # at most one row of the requested shape; none matching is still a promotion
            ReservationRepo.promote_oldest_waiting(db, event_id, user.id, adults, children)
            db.commit()
            return SignUpOutcome.PROMOTED_FROM_WAITING

        db.add(Reservation(
            event_id=event_id,
            user_id=user.id,
            user_name1=user.user_name1,
            user_name2=user.user_name2,
            adults=adults,
            children=children,
            waiting_list=wait,
            ts=ts,
        ))
        db.commit()
        return SignUpOutcome.INSERTED

    @staticmethod
    def _delete_and_prompt(db: Session, event_id: int, user_id: int, delete) -> int:
        """Run `delete`, then prompt the waiting list if the event was full before.

        The user's attachment goes with their last reservation row.
        """
        try:
            was_full = not CapacityService.has_vacancy(db, event_id)
            deleted = delete()
            db.flush()
            if not ReservationRepo.holds_any(db, event_id, user_id):
                AttachmentRepo.delete(db, user_id, event_id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to delete reservation for event {event_id}: {e}")
            raise StoreError("Failed to delete reservation") from e

        if was_full:
            OutboxService.prompt_waiting_list(db, event_id)
        return deleted

    @staticmethod
    def cancel(db: Session, event_id: int, user_id: int, adults: int) -> bool:
        """Delete one reservation row with `adults` adults, waiting-list rows first"""
        deleted = ReservationService._delete_and_prompt(
            db, event_id, user_id, lambda: ReservationRepo.delete_one(db, event_id, user_id, adults)
        )
        return bool(deleted)

    @staticmethod
    def wontgo(db: Session, event_id: int, user_id: int) -> int:
        """Delete every reservation row the user holds for the event"""
        return ReservationService._delete_and_prompt(
            db, event_id, user_id, lambda: ReservationRepo.delete_for_event(db, event_id, user_id)
        )

    @staticmethod
    def delete_reservation(db: Session, event_id: int, user_id: int) -> int:
        """Administrative removal of a user from an event"""
        deleted = ReservationService.wontgo(db, event_id, user_id)
        logger.info(f"Removed {deleted} reservations of user {user_id} from event {event_id}")
        return deleted

    @staticmethod
    def add_attachment(db: Session, event_id: int, user_id: int, text: str) -> bool:
        """Attach a note to the user's reservation; ignored without a reservation"""
        if len(text) > MAX_ATTACHMENT_LENGTH:
            text = f"{text[:MAX_ATTACHMENT_LENGTH]}..."

        if not ReservationRepo.holds_any(db, event_id, user_id):
            return False

        try:
            attachment = db.query(Attachment).filter(
                Attachment.event_id == event_id,
                Attachment.user_id == user_id
            ).first()
            if attachment:
                attachment.attachment = text
            else:
                db.add(Attachment(event_id=event_id, user_id=user_id, attachment=text))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save attachment for user {user_id}, event {event_id}: {e}")
            raise StoreError("Failed to save attachment") from e
        return True

    @staticmethod
    def get_attachment(db: Session, event_id: int, user_id: int) -> Optional[str]:
        row = db.query(Attachment.attachment).filter(
            Attachment.event_id == event_id,
            Attachment.user_id == user_id
        ).first()
        return row.attachment if row else None

    @staticmethod
    def get_participants(
        db: Session,
        event_id: int,
        waiting_list: bool,
        page: int = 0,
        per_page: int = 0
    ) -> List[Participant]:
        """Per-user totals for one list of an event, ordered by first reservation"""
        holders = db.query(
            Reservation.user_id.label("user_id"),
            func.min(Reservation.user_name1).label("user_name1"),
            func.min(Reservation.user_name2).label("user_name2"),
            func.sum(Reservation.adults).label("adults"),
            func.sum(Reservation.children).label("children"),
            func.min(Reservation.ts).label("first_ts"),
            func.min(Reservation.id).label("first_id"),
        ).filter(
            Reservation.event_id == event_id,
            Reservation.waiting_list.is_(waiting_list)
        ).group_by(Reservation.user_id).subquery()

        query = db.query(holders, Attachment.attachment).outerjoin(
            Attachment,
            (Attachment.event_id == event_id) & (Attachment.user_id == holders.c.user_id)
        ).order_by(holders.c.first_ts, holders.c.first_id)

        return [
            Participant(
                user_id=row.user_id,
                user_name1=row.user_name1,
                user_name2=row.user_name2,
                adults=row.adults or 0,
                children=row.children or 0,
                attachment=row.attachment,
            )
            for row in paginate(query, page, per_page).all()
        ]
