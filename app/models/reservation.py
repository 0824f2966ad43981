"""
Reservation ledger, attachments and per-user current event pointer
"""

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)

from app.core.db import Base
from app.utils.time import utcnow


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    user_name1 = Column(String(255), nullable=False)
    user_name2 = Column(String(255), nullable=False, default="")
    adults = Column(Integer, nullable=False, default=0)
    children = Column(Integer, nullable=False, default=0)
    waiting_list = Column(Boolean, nullable=False, default=False)
    ts = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("adults >= 0", name="ck_reservations_adults"),
        CheckConstraint("children >= 0", name="ck_reservations_children"),
    )


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    attachment = Column(Text, nullable=False)

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_attachments_event_user"),)


class CurrentEvent(Base):
    __tablename__ = "current_events"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    event_id = Column(Integer, nullable=False)
