"""
Reservation-related Pydantic schemas
"""

import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

class User(BaseModel):
    """Identity of the person acting on a reservation"""
    id: int
    user_name1: str
    user_name2: str = ""
    is_admin: bool = False

class SignUpOutcome(str, enum.Enum):
    INSERTED = "inserted"
    PROMOTED_FROM_WAITING = "promoted_from_waiting"
    REJECTED_CAPACITY = "rejected_capacity"
    REJECTED_BLACKLISTED = "rejected_blacklisted"
    REJECTED_CLOSED_OR_EXPIRED = "rejected_closed_or_expired"
    REJECTED_CONFLICT = "rejected_conflict"

    @property
    def accepted(self) -> bool:
        return self in (SignUpOutcome.INSERTED, SignUpOutcome.PROMOTED_FROM_WAITING)

class Participant(BaseModel):
    user_id: int
    user_name1: str
    user_name2: str
    adults: int
    children: int
    attachment: Optional[str] = None

class Presence(BaseModel):
    """Active participant whose attendance is not yet confirmed"""
    user_id: int
    user_name1: str
    user_name2: str
    reserved: int
    attachment: Optional[str] = None

class BlacklistedUser(BaseModel):
    user_id: int
    user_name1: str
    user_name2: str
    reason: str
    ts: datetime

    class Config:
        from_attributes = True

class UserRequest(BaseModel):
    event_id: int
    user_id: int

class SignUpRequest(UserRequest):
    user_name1: str
    user_name2: str = ""
    adults: int = Field(default=0, ge=0)
    children: int = Field(default=0, ge=0)

class CancelRequest(UserRequest):
    adults: int = Field(ge=0)

class AttachmentRequest(UserRequest):
    text: str

class PresenceRequest(UserRequest):
    confirmed_by: int
