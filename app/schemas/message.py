"""
Outbox message schemas
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel

from app.models.message import MessageType

class MessageBatch(BaseModel):
    """One due message and the recipients resolved for it in a single drain"""
    message_id: int
    event_id: int
    sender: str
    message_type: MessageType
    waiting_list: bool
    text: str
    recipients: List[int] = []

class MessageInfo(BaseModel):
    sender: str
    text: str
    ts: datetime
    waiting_list: bool

    class Config:
        from_attributes = True
