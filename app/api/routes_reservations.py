"""
Reservation API routes
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.exceptions import Blacklisted, CapacityExceeded, ValidationError
from app.schemas.common import PaginationParams
from app.schemas.reservation import (
    AttachmentRequest, CancelRequest, PresenceRequest, SignUpOutcome, SignUpRequest, User, UserRequest,
)
from app.services.capacity_service import CapacityService
from app.services.presence_service import PresenceService
from app.services.reservation_service import ReservationService
from app.utils.security import RATE_LIMIT_WINDOW_SECONDS, can_manage_event, get_client_ip, is_admin, rate_limit_check
from app.utils.responses import success_response, error_response, rate_limit_error, forbidden_error

router = APIRouter()

REJECTIONS = {
    SignUpOutcome.REJECTED_CAPACITY: (CapacityExceeded, "Reservation limit per person exceeded"),
    SignUpOutcome.REJECTED_BLACKLISTED: (Blacklisted, "You are not allowed to sign up"),
    SignUpOutcome.REJECTED_CLOSED_OR_EXPIRED: (ValidationError, "Registration is closed"),
    SignUpOutcome.REJECTED_CONFLICT: (ValidationError, "You are already signed up for another event at this time"),
}

def check_rate_limit(request: Request):
    if not rate_limit_check(get_client_ip(request)):
        rate_limit_error(RATE_LIMIT_WINDOW_SECONDS)

def check_group_leader(db: Session, event_id: int, user_id: int):
    if not can_manage_event(db, event_id, user_id):
        forbidden_error("Only group leaders can check attendance")

@router.post("/sign-up", dependencies=[Depends(check_rate_limit)])
async def sign_up(data: SignUpRequest, db: Session = Depends(get_db)):
    """Reserve places, on the waiting list when the event cannot fit them"""
    vacancy = CapacityService.vacancy(db, data.event_id)
    wait = data.adults > vacancy.adults or data.children > vacancy.children

    user = User(
        id=data.user_id,
        user_name1=data.user_name1,
        user_name2=data.user_name2,
        is_admin=is_admin(data.user_id)
    )
    outcome = ReservationService.sign_up(db, data.event_id, user, data.adults, data.children, wait)

    if not outcome.accepted:
        error, message = REJECTIONS[outcome]
        raise error(message, error_code=outcome.value)

    on_waiting_list = wait and outcome == SignUpOutcome.INSERTED
    return success_response(
        message="Added to the waiting list" if on_waiting_list else "Reservation confirmed",
        data={"outcome": outcome.value, "waiting_list": on_waiting_list}
    )

@router.post("/cancel", dependencies=[Depends(check_rate_limit)])
async def cancel(data: CancelRequest, db: Session = Depends(get_db)):
    """Cancel one reservation"""
    if not ReservationService.cancel(db, data.event_id, data.user_id, data.adults):
        return error_response(message="Reservation not found", status_code=404)
    return success_response(message="Reservation cancelled")

@router.post("/wontgo", dependencies=[Depends(check_rate_limit)])
async def wontgo(data: UserRequest, db: Session = Depends(get_db)):
    """Cancel all reservations for an event"""
    deleted = ReservationService.wontgo(db, data.event_id, data.user_id)
    return success_response(message="Reservations cancelled", data={"deleted": deleted})

@router.post("/attachment", dependencies=[Depends(check_rate_limit)])
async def add_attachment(data: AttachmentRequest, db: Session = Depends(get_db)):
    """Attach a note to the reservation"""
    if not ReservationService.add_attachment(db, data.event_id, data.user_id, data.text):
        return error_response(message="Sign up before adding a note", status_code=409)
    return success_response(message="Note saved")

@router.get("/presence")
async def presence_list(
    event_id: int,
    user_id: int,
    pagination: PaginationParams = Depends(),
    db: Session = Depends(get_db)
):
    """Participants whose attendance is still unconfirmed"""
    check_group_leader(db, event_id, user_id)
    presence = PresenceService.get_presence_list(
        db, event_id, pagination.page, pagination.size(settings.PRESENCE_PAGE_SIZE)
    )
    return success_response(
        message="Presence list retrieved",
        data=[p.model_dump() for p in presence]
    )

@router.post("/presence")
async def confirm_presence(data: PresenceRequest, db: Session = Depends(get_db)):
    """Confirm attendance of a participant; group leaders and admins only"""
    check_group_leader(db, data.event_id, data.confirmed_by)

    recorded = PresenceService.confirm_presence(db, data.event_id, data.user_id)
    return success_response(
        message="Presence confirmed" if recorded else "Presence was already confirmed",
        data={"recorded": recorded}
    )
