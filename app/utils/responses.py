"""
Response envelopes shared by the reservation and event routes
"""

from typing import Any, Optional
from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.exceptions import DomainError
from app.schemas.common import StandardResponse, ErrorResponse

def success_response(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    response = StandardResponse(success=True, message=message, data=data)
    return JSONResponse(content=jsonable_encoder(response), status_code=status_code)

def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Any = None,
    status_code: int = 400
) -> JSONResponse:
    response = ErrorResponse(message=message, error_code=error_code, details=details)
    return JSONResponse(content=jsonable_encoder(response), status_code=status_code)

def domain_error_response(exc: DomainError) -> JSONResponse:
    """Envelope for an error raised by a service or a rejected sign-up"""
    return error_response(message=exc.message, error_code=exc.error_code, status_code=exc.status_code)

def forbidden_error(message: str):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)

def rate_limit_error(retry_after: int):
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many reservation requests. Please try again later.",
        headers={"Retry-After": str(retry_after)}
    )
