"""
Event model
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime

from app.core.db import Base


class EventState(enum.IntEnum):
    OPEN = 0
    CLOSED = 1


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    link = Column(String(1024), nullable=False, default="")
    max_adults = Column(Integer, nullable=False)
    max_children = Column(Integer, nullable=False)
    max_adults_per_reservation = Column(Integer, nullable=False)
    max_children_per_reservation = Column(Integer, nullable=False)
    ts = Column(DateTime, nullable=False, index=True)  # occurrence time
    remind_at = Column(DateTime, nullable=False)
    state = Column(Integer, nullable=False, default=EventState.OPEN)
