"""
Database models package
"""

from .event import Event, EventState
from .reservation import Reservation, Attachment, CurrentEvent
from .blacklist import BlacklistEntry
from .presence import PresenceRecord, GroupLeaderMark
from .message import Message, MessageType, OutboxEntry, DeliveryReceipt

__all__ = [
    "Event",
    "EventState",
    "Reservation",
    "Attachment",
    "CurrentEvent",
    "BlacklistEntry",
    "PresenceRecord",
    "GroupLeaderMark",
    "Message",
    "MessageType",
    "OutboxEntry",
    "DeliveryReceipt",
]
