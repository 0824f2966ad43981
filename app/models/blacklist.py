"""
Blacklist model
"""

from sqlalchemy import Column, DateTime, Integer, String

from app.core.db import Base
from app.utils.time import utcnow


class BlacklistEntry(Base):
    __tablename__ = "black_list"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    user_name1 = Column(String(255), nullable=False)
    user_name2 = Column(String(255), nullable=False, default="")
    ts = Column(DateTime, nullable=False, default=utcnow, index=True)
    reason = Column(String(512), nullable=False, default="")
