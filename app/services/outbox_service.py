"""
Message outbox: durable scheduled messages, recipient resolution and delivery receipts.

A message is due while at least one of its outbox entries has `send_at` in the
past. Every drain resolves the next recipients of each due message (users
holding a reservation in the message's scope that have no receipt yet). When a
due message resolves nobody, it has reached everyone and is removed together
with its entries and receipts.

Selecting recipients and saving receipts happen in separate calls, so delivery
is at-least-once: a crash in between re-delivers on the next drain.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import StoreError
from app.models import DeliveryReceipt, Event, Message, MessageType, OutboxEntry, Reservation
from app.schemas.message import MessageBatch, MessageInfo
from app.services.capacity_service import CapacityService
from app.utils.time import seconds_from_now

logger = logging.getLogger(__name__)

BOT_SENDER = "Bot"


class OutboxService:
    """Service for scheduling and draining outbox messages"""

    @staticmethod
    def enqueue_message(
        db: Session,
        event_id: int,
        sender: str,
        waiting_list: bool,
        message_type: MessageType,
        text: str,
        send_at: datetime
    ) -> int:
        """Create a message and its first outbox entry"""
        logger.debug(f"Enqueue {message_type.name} message for event {event_id} at {send_at}")
        try:
            message = Message(
                event_id=event_id,
                type=int(message_type),
                sender=sender,
                waiting_list=waiting_list,
                text=text,
            )
            db.add(message)
            db.flush()
            db.add(OutboxEntry(message_id=message.id, send_at=send_at))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to enqueue message for event {event_id}: {e}")
            raise StoreError("Failed to enqueue message") from e
        return message.id

    @staticmethod
    def prompt_waiting_list(db: Session, event_id: int) -> bool:
        """Schedule a waiting-list prompt if the event has free places.

        Recipients are not chosen here; the drain picks them so that it sees
        the vacancy state at send time. Returns True if a send was scheduled.
        """
        if not CapacityService.has_vacancy(db, event_id):
            logger.debug(f"prompt_waiting_list - no vacancies, event {event_id}")
            return False

        # give some time to finish multiple cancellations
        send_at = seconds_from_now(settings.WAITING_LIST_PROMPT_DELAY_SECONDS)

        message = db.query(Message).filter(
            Message.event_id == event_id,
            Message.type == int(MessageType.WAITING_LIST_PROMPT)
        ).first()
        if message:
            try:
                db.add(OutboxEntry(message_id=message.id, send_at=send_at))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to re-arm waiting list prompt {message.id}: {e}")
                raise StoreError("Failed to schedule waiting list prompt") from e
            logger.debug(f"Re-armed waiting list prompt {message.id} for event {event_id}")
            return True

        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            logger.warning(f"Failed to get event {event_id}")
            return False

        OutboxService.enqueue_message(
            db,
            event_id=event_id,
            sender=BOT_SENDER,
            waiting_list=True,
            message_type=MessageType.WAITING_LIST_PROMPT,
            text=f'Places became available for "{event.name}".\nYou can now confirm your reservation.',
            send_at=send_at,
        )
        return True

    @staticmethod
    def _resolve_recipients(db: Session, message: Message, limit: int) -> List[int]:
        """Users in the message scope without a receipt, oldest reservation first"""
        holders = db.query(
            Reservation.user_id.label("user_id"),
            func.min(Reservation.ts).label("first_ts"),
            func.min(Reservation.id).label("first_id"),
        ).filter(
            Reservation.event_id == message.event_id,
            Reservation.waiting_list.is_(message.waiting_list)
        ).group_by(Reservation.user_id).subquery()

        served = select(DeliveryReceipt.user_id).where(DeliveryReceipt.message_id == message.id)

        rows = db.query(holders.c.user_id).filter(
            holders.c.user_id.not_in(served)
        ).order_by(holders.c.first_ts, holders.c.first_id).limit(limit).all()
        return [row.user_id for row in rows]

    @staticmethod
    def _clear_schedule(db: Session, message_id: int) -> None:
        db.query(OutboxEntry).filter(OutboxEntry.message_id == message_id).delete(synchronize_session=False)
        db.query(DeliveryReceipt).filter(DeliveryReceipt.message_id == message_id).delete(synchronize_session=False)

    @staticmethod
    def get_pending_messages(db: Session, now: datetime, max_recipients: int) -> List[MessageBatch]:
        """Drain due messages into batches, sharing one recipient budget across all of them.

        Must not run concurrently with itself.
        """
        due = db.query(OutboxEntry.message_id).filter(
            OutboxEntry.send_at < now
        ).order_by(OutboxEntry.id).all()

        batches: List[MessageBatch] = []
        budget = max_recipients
        seen = set()
        try:
            for (message_id,) in due:
                if message_id in seen:
                    continue
                seen.add(message_id)
                if budget <= 0:
                    break

                message = db.query(Message).filter(Message.id == message_id).first()
                if message is None:
                    logger.warning(f"Dropping outbox entries of missing message {message_id}")
                    OutboxService._clear_schedule(db, message_id)
                    continue

                message_type = MessageType(message.type)
                if message_type == MessageType.WAITING_LIST_PROMPT:
                    if not CapacityService.has_vacancy(db, message.event_id):
                        # vacancy is gone, keep the message for the next prompt_waiting_list
                        logger.debug(f"Suppressed waiting list prompt {message.id}, no vacancies")
                        OutboxService._clear_schedule(db, message.id)
                        continue
                    # one waitlisted user at a time gets first refusal
                    limit = 1
                else:
                    limit = budget

                recipients = OutboxService._resolve_recipients(db, message, limit)
                if not recipients:
                    logger.debug(f"Finished sending message {message.id}")
                    OutboxService._clear_schedule(db, message.id)
                    db.delete(message)
                    continue

                budget -= len(recipients)
                batches.append(MessageBatch(
                    message_id=message.id,
                    event_id=message.event_id,
                    sender=message.sender,
                    message_type=message_type,
                    waiting_list=message.waiting_list,
                    text=message.text,
                    recipients=recipients,
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to drain outbox: {e}")
            raise StoreError("Failed to drain outbox") from e
        return batches

    @staticmethod
    def save_receipt(db: Session, message_id: int, user_id: int) -> None:
        """Record that `user_id` has been served `message_id`"""
        try:
            db.add(DeliveryReceipt(message_id=message_id, user_id=user_id))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save receipt for message {message_id}, user {user_id}: {e}")
            raise StoreError("Failed to save receipt") from e

    @staticmethod
    def get_messages(db: Session, event_id: int, waiting_list: Optional[bool] = None) -> List[MessageInfo]:
        """Direct messages of an event still in the outbox, oldest first"""
        query = db.query(Message).filter(
            Message.event_id == event_id,
            Message.type == int(MessageType.DIRECT)
        )
        if waiting_list is not None:
            query = query.filter(Message.waiting_list.is_(waiting_list))
        return [MessageInfo.model_validate(m) for m in query.order_by(Message.ts, Message.id).all()]
