"""
Outbox models: messages, scheduled sends and delivery receipts
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from app.core.db import Base
from app.utils.time import utcnow


class MessageType(enum.IntEnum):
    DIRECT = 0
    REMINDER = 1
    WAITING_LIST_PROMPT = 2


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    type = Column(Integer, nullable=False)
    sender = Column(String(255), nullable=False)
    waiting_list = Column(Boolean, nullable=False, default=False)  # target scope
    text = Column(Text, nullable=False)
    ts = Column(DateTime, nullable=False, default=utcnow)


class OutboxEntry(Base):
    __tablename__ = "message_outbox"

    id = Column(Integer, primary_key=True)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    send_at = Column(DateTime, nullable=False, index=True)


class DeliveryReceipt(Base):
    # No (message, user) uniqueness: a crash between delivery and receipt may record duplicates
    __tablename__ = "message_sent"

    id = Column(Integer, primary_key=True)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    ts = Column(DateTime, nullable=False, default=utcnow)
