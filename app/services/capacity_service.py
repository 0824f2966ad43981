"""
Per-event vacancy calculation
"""

from sqlalchemy.orm import Session

from app.schemas.event import Vacancy
from app.services.repositories import EventRepo, ReservationRepo


class CapacityService:
    """Read-only vacancy checks over active reservations"""

    @staticmethod
    def vacancy(db: Session, event_id: int) -> Vacancy:
        """Remaining adult and child capacity; an unknown event has none"""
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            return Vacancy(adults=0, children=0)

        reserved_adults, reserved_children = ReservationRepo.active_totals(db, event_id)
        # limits may have been lowered below current usage
        return Vacancy(
            adults=max(event.max_adults - reserved_adults, 0),
            children=max(event.max_children - reserved_children, 0),
        )

    @staticmethod
    def has_vacancy(db: Session, event_id: int) -> bool:
        return CapacityService.vacancy(db, event_id).available
