"""
Public API routes - event listings
"""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.exceptions import NotFoundError
from app.schemas.common import PaginationParams
from app.schemas.event import EventStats
from app.services.event_service import EventService
from app.services.outbox_service import OutboxService
from app.services.repositories import EventRepo
from app.services.reservation_service import ReservationService
from app.utils.security import can_view_participants
from app.utils.responses import success_response, forbidden_error

router = APIRouter()

def event_data(stats: EventStats) -> dict:
    data = stats.model_dump()
    data["vacancy"] = stats.vacancy.model_dump()
    return data

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events")
async def list_events(
    user_id: int = 0,
    pagination: PaginationParams = Depends(),
    db: Session = Depends(get_db)
):
    """List events by date with the caller's own reservation totals"""
    events = EventService.get_events(db, user_id, pagination.page, pagination.size(settings.EVENT_LIST_PAGE_SIZE))
    return success_response(
        message="Events retrieved",
        data=[event_data(stats) for stats in events]
    )

@router.get("/events/{event_id}")
async def get_event(event_id: int, user_id: int = 0, db: Session = Depends(get_db)):
    """Get event details and vacancy"""
    stats = EventService.get_event(db, event_id, user_id)
    return success_response(message="Event retrieved", data=event_data(stats))

@router.get("/events/{event_id}/participants")
async def get_participants(
    event_id: int,
    user_id: int = 0,
    waiting_list: bool = False,
    pagination: PaginationParams = Depends(),
    db: Session = Depends(get_db)
):
    """List participants; restricted to admins and group leaders unless lists are public"""
    if not can_view_participants(db, event_id, user_id):
        forbidden_error("Participant lists are not public")

    if not EventRepo.get_by_id(db, event_id):
        raise NotFoundError("Event not found")
    participants = ReservationService.get_participants(
        db, event_id, waiting_list, pagination.page, pagination.size(settings.EVENT_PAGE_SIZE)
    )
    return success_response(
        message="Participants retrieved",
        data=[p.model_dump() for p in participants]
    )

@router.get("/events/{event_id}/messages")
async def get_messages(event_id: int, waiting_list: Optional[bool] = None, db: Session = Depends(get_db)):
    """Organizer messages for an event that are still being delivered"""
    messages = OutboxService.get_messages(db, event_id, waiting_list)
    return success_response(
        message="Messages retrieved",
        data=[m.model_dump() for m in messages]
    )
