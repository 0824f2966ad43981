"""
Access checks for reservation routes: admins, group leaders and per-client rate limits
"""

import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.presence_service import PresenceService

RATE_LIMIT_WINDOW_SECONDS = 60

# client ip -> request times inside the current window
rate_limiter: Dict[str, Deque[float]] = defaultdict(deque)
_rate_limiter_lock = threading.Lock()

def is_admin(user_id: int) -> bool:
    """Admins are configured by id"""
    return user_id in settings.admins

def can_manage_event(db: Session, event_id: int, user_id: int) -> bool:
    """Admins and the event's group leaders may check attendance"""
    return is_admin(user_id) or PresenceService.is_group_leader(db, event_id, user_id)

def can_view_participants(db: Session, event_id: int, user_id: int) -> bool:
    return settings.PUBLIC_LISTS or can_manage_event(db, event_id, user_id)

def rate_limit_check(client_ip: str, limit: Optional[int] = None, now: Optional[float] = None) -> bool:
    """Sliding one-minute window per client; records the request when allowed"""
    limit = limit or settings.RATE_LIMIT_PER_MINUTE
    now = now or time.time()
    window_start = now - RATE_LIMIT_WINDOW_SECONDS

    with _rate_limiter_lock:
        # forget clients with nothing left inside the window
        idle = [ip for ip, times in rate_limiter.items() if not times or times[-1] <= window_start]
        for ip in idle:
            del rate_limiter[ip]

        requests = rate_limiter[client_ip]
        while requests and requests[0] <= window_start:
            requests.popleft()

        if len(requests) >= limit:
            return False
        requests.append(now)
        return True

def get_client_ip(request: Request) -> str:
    """Client address, honouring reverse proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.client.host
