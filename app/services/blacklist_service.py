"""
Blacklist management, absentee enforcement and retention sweeps
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, StoreError
from app.models import BlacklistEntry, Event, PresenceRecord, Reservation
from app.schemas.reservation import BlacklistedUser
from app.services.event_service import EventService
from app.services.repositories import AttachmentRepo, BlacklistRepo, ReservationRepo, paginate
from app.utils.time import start_of_day, utcnow

logger = logging.getLogger(__name__)


class BlacklistService:
    """Service for banning users and cleaning up after events"""

    @staticmethod
    def ban_user(
        db: Session,
        user_id: int,
        user_name1: str,
        user_name2: str,
        reason: str,
        cancel_future_reservations: bool
    ) -> None:
        """Blacklist a user, optionally dropping all their reservations.

        The cascade does not prompt any waiting list.
        """
        try:
            entry = db.query(BlacklistEntry).filter(BlacklistEntry.user_id == user_id).first()
            if entry:
                entry.reason = reason
                entry.ts = utcnow()
            else:
                db.add(BlacklistEntry(
                    user_id=user_id,
                    user_name1=user_name1,
                    user_name2=user_name2,
                    reason=reason,
                    ts=utcnow(),
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to ban user {user_id}: {e}")
            raise StoreError("Failed to ban user") from e
        logger.info(f"Banned user {user_id}: {reason}")

        if cancel_future_reservations:
            try:
                ReservationRepo.delete_all(db, user_id)
                AttachmentRepo.delete(db, user_id)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to cancel reservations of banned user {user_id}: {e}")
                raise StoreError("Failed to cancel reservations of banned user") from e

    @staticmethod
    def add_to_black_list(db: Session, user_id: int, cancel_future_reservations: bool) -> None:
        """Ban by id, taking display names from any reservation the user holds"""
        names = ReservationRepo.user_names(db, user_id) or (str(user_id), "")
        BlacklistService.ban_user(db, user_id, names[0], names[1], "banned by admin", cancel_future_reservations)

    @staticmethod
    def remove_from_black_list(db: Session, user_id: int) -> bool:
        try:
            deleted = db.query(BlacklistEntry).filter(BlacklistEntry.user_id == user_id).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("Failed to remove user from black list") from e
        return deleted > 0

    @staticmethod
    def is_in_black_list(db: Session, user_id: int) -> bool:
        return BlacklistRepo.contains(db, user_id)

    @staticmethod
    def get_ban_reason(db: Session, user_id: int) -> Optional[str]:
        row = db.query(BlacklistEntry.reason).filter(BlacklistEntry.user_id == user_id).first()
        return row.reason if row else None

    @staticmethod
    def get_black_list(db: Session, page: int = 0, per_page: int = 0) -> List[BlacklistedUser]:
        query = db.query(BlacklistEntry).order_by(BlacklistEntry.user_name1, BlacklistEntry.user_id)
        return [BlacklistedUser.model_validate(entry) for entry in paginate(query, page, per_page).all()]

    @staticmethod
    def blacklist_absent_participants(
        db: Session,
        event_id: int,
        admins: Iterable[int],
        cancel_future_reservations: bool
    ) -> List[int]:
        """Ban active participants who were not confirmed present.

        Skipped entirely when the event has no presence records, since then
        attendance was never checked. Returns the banned user ids.
        """
        present = {
            row.user_id
            for row in db.query(PresenceRecord.user_id).filter(PresenceRecord.event_id == event_id).all()
        }
        if not present:
            logger.debug(f"Presence was not checked for event {event_id}, nobody is banned")
            return []

        try:
            reason = EventService.get_event_name(db, event_id)
        except NotFoundError:
            logger.warning(f"Failed to get event {event_id}")
            return []

        holders = db.query(
            Reservation.user_id,
            func.min(Reservation.user_name1).label("user_name1"),
            func.min(Reservation.user_name2).label("user_name2"),
        ).filter(
            Reservation.event_id == event_id,
            Reservation.waiting_list.is_(False)
        ).group_by(Reservation.user_id).all()

        admins = set(admins)
        banned = []
        for holder in holders:
            if holder.user_id in present or holder.user_id in admins:
                continue
            BlacklistService.ban_user(
                db, holder.user_id, holder.user_name1, holder.user_name2, reason, cancel_future_reservations
            )
            banned.append(holder.user_id)
        return banned

    @staticmethod
    def clear_old_events(
        db: Session,
        now: datetime,
        automatic_blacklisting: bool,
        cancel_future_reservations: bool,
        admins: Iterable[int]
    ) -> int:
        """Tear down every event that took place before the day of `now`"""
        cutoff = start_of_day(now)
        event_ids = [row.id for row in db.query(Event.id).filter(Event.ts < cutoff).all()]

        for event_id in event_ids:
            if automatic_blacklisting:
                try:
                    BlacklistService.blacklist_absent_participants(db, event_id, admins, cancel_future_reservations)
                except (StoreError, SQLAlchemyError) as e:
                    db.rollback()
                    logger.error(f"Failed to blacklist absent participants of event {event_id}: {e}")
            EventService.delete_event(db, event_id)

        if event_ids:
            logger.info(f"Cleared {len(event_ids)} events older than {cutoff}")
        return len(event_ids)

    @staticmethod
    def clear_black_list(db: Session, cutoff: datetime) -> int:
        """Forget bans recorded before `cutoff`"""
        try:
            deleted = db.query(BlacklistEntry).filter(BlacklistEntry.ts < cutoff).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("Failed to clear black list") from e
        if deleted:
            logger.info(f"Removed {deleted} black list entries older than {cutoff}")
        return deleted
