"""
Response envelopes and paging parameters shared by all routes
"""

from typing import Any, Optional
from pydantic import BaseModel

class StandardResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None

class ErrorResponse(BaseModel):
    """Error envelope; `error_code` is a sign-up outcome or an exception name"""
    success: bool = False
    message: str
    error_code: Optional[str] = None
    details: Optional[Any] = None

class PaginationParams(BaseModel):
    """Zero-based `page`; `per_page` 0 falls back to the route's configured size"""
    page: int = 0
    per_page: int = 0

    def size(self, configured: int) -> int:
        return self.per_page or configured
