"""
Attendance confirmations and group leaders
"""

import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreError
from app.models import Attachment, GroupLeaderMark, PresenceRecord, Reservation
from app.schemas.reservation import Presence
from app.services.repositories import paginate

logger = logging.getLogger(__name__)


class PresenceService:
    """Service for presence confirmation"""

    @staticmethod
    def confirm_presence(db: Session, event_id: int, user_id: int) -> bool:
        """Mark the user as present; False if already confirmed"""
        exists = db.query(PresenceRecord.id).filter(
            PresenceRecord.event_id == event_id,
            PresenceRecord.user_id == user_id
        ).first()
        if exists:
            return False
        try:
            db.add(PresenceRecord(event_id=event_id, user_id=user_id))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to confirm presence of user {user_id}, event {event_id}: {e}")
            raise StoreError("Failed to confirm presence") from e
        return True

    @staticmethod
    def get_presence_list(db: Session, event_id: int, page: int = 0, per_page: int = 0) -> List[Presence]:
        """Active participants still awaiting confirmation, by name"""
        holders = db.query(
            Reservation.user_id.label("user_id"),
            func.min(Reservation.user_name1).label("user_name1"),
            func.min(Reservation.user_name2).label("user_name2"),
            func.count(Reservation.id).label("reserved"),
        ).filter(
            Reservation.event_id == event_id,
            Reservation.waiting_list.is_(False)
        ).group_by(Reservation.user_id).subquery()

        query = db.query(holders, Attachment.attachment).outerjoin(
            PresenceRecord,
            (PresenceRecord.event_id == event_id) & (PresenceRecord.user_id == holders.c.user_id)
        ).outerjoin(
            Attachment,
            (Attachment.event_id == event_id) & (Attachment.user_id == holders.c.user_id)
        ).filter(
            PresenceRecord.id.is_(None)
        ).order_by(holders.c.user_name1, holders.c.user_id)

        return [
            Presence(
                user_id=row.user_id,
                user_name1=row.user_name1,
                user_name2=row.user_name2,
                reserved=row.reserved,
                attachment=row.attachment,
            )
            for row in paginate(query, page, per_page).all()
        ]

    @staticmethod
    def set_group_leader(db: Session, event_id: int, user_id: int) -> None:
        if PresenceService.is_group_leader(db, event_id, user_id):
            return
        try:
            db.add(GroupLeaderMark(event_id=event_id, user_id=user_id))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("Failed to set group leader") from e

    @staticmethod
    def is_group_leader(db: Session, event_id: int, user_id: int) -> bool:
        return db.query(GroupLeaderMark.id).filter(
            GroupLeaderMark.event_id == event_id,
            GroupLeaderMark.user_id == user_id
        ).first() is not None
