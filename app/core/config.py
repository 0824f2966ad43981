"""
Configuration settings for the application
"""

import os
from datetime import datetime
from typing import List, Optional, Set, Tuple
from pydantic_settings import BaseSettings

from app.utils.time import utcnow


def parse_mailing_hours(value: str) -> Tuple[int, int]:
    """Parse a "HH:MM +zzzz..HH:MM +zzzz" window into UTC seconds-of-day"""
    parts = value.split(".")
    if len(parts) != 3:
        raise ValueError("Wrong mailing hours format.")

    bounds = []
    for part in (parts[0], parts[2]):
        try:
            parsed = datetime.strptime(f"2022-07-06 {part.strip()}", "%Y-%m-%d %H:%M %z")
        except ValueError as e:
            raise ValueError("Failed to parse mailing hours.") from e
        bounds.append(int(parsed.timestamp()) % 86400)
    return bounds[0], bounds[1]


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./event_signup.db")

    # Users with admin rights, comma separated ids
    ADMIN_IDS: str = os.getenv("ADMIN_IDS", "")
    PUBLIC_LISTS: bool = False

    # Blacklisting
    AUTOMATIC_BLACKLISTING: bool = False
    CANCEL_FUTURE_RESERVATIONS_ON_BAN: bool = True
    DELETE_FROM_BLACK_LIST_AFTER_DAYS: int = 180

    # Cleanup
    CLEANUP_OLD_EVENTS: bool = True
    DROP_EVENTS_AFTER_HOURS: int = 24
    MAINTENANCE_INTERVAL_SECONDS: int = 3600

    # Paging
    EVENT_LIST_PAGE_SIZE: int = 10
    EVENT_PAGE_SIZE: int = 20
    PRESENCE_PAGE_SIZE: int = 20

    # Outbox
    LIMIT_BULK_NOTIFICATIONS_PER_SECOND: int = 20
    OUTBOX_POLL_INTERVAL_SECONDS: int = 5
    WAITING_LIST_PROMPT_DELAY_SECONDS: int = 10
    MAILING_HOURS: str = "00:00 +0000..23:59 +0000"

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    class Config:
        env_file = ".env"

    @property
    def admins(self) -> Set[int]:
        return {int(v) for v in self.ADMIN_IDS.split(",") if v.strip()}

    @property
    def mailing_hours(self) -> Tuple[int, int]:
        return parse_mailing_hours(self.MAILING_HOURS)

    @property
    def recipients_per_poll(self) -> int:
        return self.LIMIT_BULK_NOTIFICATIONS_PER_SECOND * self.OUTBOX_POLL_INTERVAL_SECONDS

    def within_mailing_hours(self, now: Optional[datetime] = None) -> bool:
        """Check whether bulk notifications may be sent at `now` (naive UTC)"""
        now = now or utcnow()
        start, end = self.mailing_hours
        seconds = now.hour * 3600 + now.minute * 60
        if start <= end:
            return start <= seconds <= end
        # window wraps around midnight
        return seconds >= start or seconds <= end

settings = Settings()
