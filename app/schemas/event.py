"""
Event-related Pydantic schemas
"""

from datetime import datetime
from pydantic import BaseModel, Field

from app.models.event import EventState

class EventCreate(BaseModel):
    """Schema for creating or updating an event"""
    name: str
    link: str = ""
    max_adults: int = Field(ge=0)
    max_children: int = Field(ge=0)
    max_adults_per_reservation: int = Field(ge=0)
    max_children_per_reservation: int = Field(ge=0)
    ts: datetime
    remind_at: datetime

class Counter(BaseModel):
    """Reservation totals for one category (adults or children)"""
    reserved: int = 0
    my_reservation: int = 0
    my_waiting: int = 0

class Vacancy(BaseModel):
    """Remaining capacity per category"""
    adults: int
    children: int

    @property
    def available(self) -> bool:
        # adult and child vacancy are summed on purpose
        return self.adults + self.children > 0

class EventStats(BaseModel):
    """Event with the aggregate reservation state seen by one user"""
    id: int
    name: str
    link: str
    max_adults: int
    max_children: int
    max_adults_per_reservation: int
    max_children_per_reservation: int
    ts: datetime
    state: EventState
    adults: Counter
    children: Counter

    @property
    def vacancy(self) -> Vacancy:
        return Vacancy(
            adults=max(self.max_adults - self.adults.reserved, 0),
            children=max(self.max_children - self.children.reserved, 0),
        )
