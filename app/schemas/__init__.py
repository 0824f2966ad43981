"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .reservation import *
from .message import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "PaginationParams",
    "EventCreate",
    "Counter",
    "Vacancy",
    "EventStats",
    "User",
    "SignUpOutcome",
    "Participant",
    "Presence",
    "BlacklistedUser",
    "SignUpRequest",
    "CancelRequest",
    "UserRequest",
    "AttachmentRequest",
    "PresenceRequest",
    "MessageBatch",
    "MessageInfo",
]
