"""
Background poller draining the outbox and running periodic cleanup
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.db import SessionLocal
from app.schemas.message import MessageBatch
from app.services.blacklist_service import BlacklistService
from app.services.outbox_service import OutboxService
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    async def deliver(self, user_id: int, batch: MessageBatch) -> bool:
        """Deliver one batch text to one user; True on success"""
        ...


class OutboxDispatcher:
    """Single poller handing due outbox batches to a sender"""

    def __init__(
        self,
        sender: MessageSender,
        session_factory: Callable[[], Session] = SessionLocal,
        config: Settings = settings
    ):
        self.sender = sender
        self.session_factory = session_factory
        self.config = config
        self._drain_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._last_maintenance: Optional[datetime] = None

    async def drain_once(self, now: Optional[datetime] = None) -> int:
        """Run one drain and deliver its batches; returns the number delivered"""
        now = now or utcnow()
        if not self.config.within_mailing_hours(now):
            return 0

        async with self._drain_lock:
            db = self.session_factory()
            try:
                batches = OutboxService.get_pending_messages(db, now, self.config.recipients_per_poll)
                delivered = 0
                for batch in batches:
                    for user_id in batch.recipients:
                        if await self.sender.deliver(user_id, batch):
                            OutboxService.save_receipt(db, batch.message_id, user_id)
                            delivered += 1
                        else:
                            logger.warning(f"Failed to deliver message {batch.message_id} to user {user_id}")
                if delivered:
                    logger.info(f"Delivered {delivered} notifications")
                return delivered
            finally:
                db.close()

    def run_maintenance(self, now: Optional[datetime] = None) -> None:
        """Drop finished events and expired bans"""
        now = now or utcnow()
        self._last_maintenance = now
        if not self.config.CLEANUP_OLD_EVENTS:
            return

        db = self.session_factory()
        try:
            BlacklistService.clear_old_events(
                db,
                now - timedelta(hours=self.config.DROP_EVENTS_AFTER_HOURS),
                self.config.AUTOMATIC_BLACKLISTING,
                self.config.CANCEL_FUTURE_RESERVATIONS_ON_BAN,
                self.config.admins,
            )
            BlacklistService.clear_black_list(
                db, now - timedelta(days=self.config.DELETE_FROM_BLACK_LIST_AFTER_DAYS)
            )
        finally:
            db.close()

    def maintenance_due(self, now: datetime) -> bool:
        if self._last_maintenance is None:
            return True
        return now - self._last_maintenance >= timedelta(seconds=self.config.MAINTENANCE_INTERVAL_SECONDS)

    async def run(self) -> None:
        logger.info("Outbox dispatcher started")
        while True:
            try:
                now = utcnow()
                if self.maintenance_due(now):
                    self.run_maintenance(now)
                await self.drain_once(now)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Outbox dispatcher iteration failed")
            await asyncio.sleep(self.config.OUTBOX_POLL_INTERVAL_SECONDS)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Outbox dispatcher stopped")
