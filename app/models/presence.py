"""
Attendance confirmations and group leader marks
"""

from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint

from app.core.db import Base


class PresenceRecord(Base):
    __tablename__ = "presence"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_presence_event_user"),)


class GroupLeaderMark(Base):
    __tablename__ = "group_leaders"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_group_leaders_event_user"),)
