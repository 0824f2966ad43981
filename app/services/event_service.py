"""
Event lifecycle: creation, limits and state changes, lookups and teardown
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, StoreError
from app.models import (
    Attachment, CurrentEvent, DeliveryReceipt, Event, EventState, GroupLeaderMark,
    Message, MessageType, OutboxEntry, PresenceRecord, Reservation,
)
from app.schemas.event import EventCreate, EventStats
from app.services.capacity_service import CapacityService
from app.services.outbox_service import BOT_SENDER, OutboxService
from app.services.repositories import EventRepo

logger = logging.getLogger(__name__)

TS_FORMAT = "%d.%m.%Y %H:%M"


class EventService:
    """Service for event operations"""

    @staticmethod
    def create_event(db: Session, data: EventCreate) -> int:
        """Create an event and schedule its reminder to active participants"""
        try:
            event = Event(**data.model_dump(), state=int(EventState.OPEN))
            db.add(event)
            db.commit()
            db.refresh(event)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create event {data.name}: {e}")
            raise StoreError("Failed to create event") from e

        OutboxService.enqueue_message(
            db,
            event_id=event.id,
            sender=BOT_SENDER,
            waiting_list=False,
            message_type=MessageType.REMINDER,
            text=f'Reminder: you are signed up for "{event.name}" on {event.ts:{TS_FORMAT}}.\n{event.link}',
            send_at=event.remind_at,
        )
        logger.info(f"Created event {event.id} '{event.name}'")
        return event.id

    @staticmethod
    def update_event(db: Session, event_id: int, data: EventCreate) -> None:
        """Overwrite event details; the pending reminder follows the new time"""
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise NotFoundError("Event not found")

        try:
            was_full = not CapacityService.has_vacancy(db, event_id)
            for field, value in data.model_dump().items():
                setattr(event, field, value)
            reminders = select(Message.id).where(
                Message.event_id == event_id,
                Message.type == int(MessageType.REMINDER)
            )
            db.query(OutboxEntry).filter(OutboxEntry.message_id.in_(reminders)).update(
                {OutboxEntry.send_at: data.remind_at}, synchronize_session=False
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update event {event_id}: {e}")
            raise StoreError("Failed to update event") from e

        if was_full:
            OutboxService.prompt_waiting_list(db, event_id)

    @staticmethod
    def get_event(db: Session, event_id: int, user_id: int) -> EventStats:
        """Event stats as seen by `user_id`; remembers it as the user's current event"""
        stats = EventRepo.stats(db, event_id, user_id)
        if stats is None:
            raise NotFoundError("Event not found")
        EventService.set_current_event(db, user_id, event_id)
        return stats

    @staticmethod
    def get_events(db: Session, user_id: int, page: int = 0, per_page: int = 0) -> List[EventStats]:
        return EventRepo.list_stats(db, user_id, page, per_page)

    @staticmethod
    def get_event_name(db: Session, event_id: int) -> str:
        """Display name used for ban reasons: occurrence time followed by name"""
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise NotFoundError("Event not found")
        return f"{event.ts:{TS_FORMAT}} {event.name}"

    @staticmethod
    def set_current_event(db: Session, user_id: int, event_id: int) -> None:
        try:
            db.merge(CurrentEvent(user_id=user_id, event_id=event_id))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("Failed to save current event") from e

    @staticmethod
    def get_current_event(db: Session, user_id: int) -> Optional[int]:
        row = db.query(CurrentEvent.event_id).filter(CurrentEvent.user_id == user_id).first()
        return row.event_id if row else None

    @staticmethod
    def change_event_state(db: Session, event_id: int, state: EventState) -> None:
        try:
            updated = db.query(Event).filter(Event.id == event_id).update(
                {Event.state: int(state)}, synchronize_session=False
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("Failed to change event state") from e
        if not updated:
            raise NotFoundError("Event not found")
        logger.info(f"Event {event_id} is now {state.name}")

    @staticmethod
    def set_event_limits(db: Session, event_id: int, max_adults: int, max_children: int) -> None:
        """Change capacity; prompts the waiting list if places became available"""
        try:
            was_full = not CapacityService.has_vacancy(db, event_id)
            updated = db.query(Event).filter(Event.id == event_id).update(
                {Event.max_adults: max_adults, Event.max_children: max_children},
                synchronize_session=False
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to set limits of event {event_id}: {e}")
            raise StoreError("Failed to set event limits") from e
        if not updated:
            raise NotFoundError("Event not found")

        if was_full:
            OutboxService.prompt_waiting_list(db, event_id)

    @staticmethod
    def delete_event(db: Session, event_id: int) -> List[str]:
        """Delete an event and everything referencing it.

        Each table is deleted on its own; a failure is logged and collected and
        the remaining tables are still processed. Returns the collected errors.
        """
        messages = select(Message.id).where(Message.event_id == event_id)
        steps = [
            ("reservations", lambda: db.query(Reservation).filter(Reservation.event_id == event_id)),
            ("attachments", lambda: db.query(Attachment).filter(Attachment.event_id == event_id)),
            ("presence", lambda: db.query(PresenceRecord).filter(PresenceRecord.event_id == event_id)),
            ("group_leaders", lambda: db.query(GroupLeaderMark).filter(GroupLeaderMark.event_id == event_id)),
            ("message_outbox", lambda: db.query(OutboxEntry).filter(OutboxEntry.message_id.in_(messages))),
            ("message_sent", lambda: db.query(DeliveryReceipt).filter(DeliveryReceipt.message_id.in_(messages))),
            ("messages", lambda: db.query(Message).filter(Message.event_id == event_id)),
            ("current_events", lambda: db.query(CurrentEvent).filter(CurrentEvent.event_id == event_id)),
            ("events", lambda: db.query(Event).filter(Event.id == event_id)),
        ]

        errors = []
        for table, query in steps:
            try:
                query().delete(synchronize_session=False)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to delete {table} of event {event_id}: {e}")
                errors.append(f"{table}: {e}")

        logger.info(f"Deleted event {event_id}" + (f" with {len(errors)} errors" if errors else ""))
        return errors
