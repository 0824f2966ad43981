"""
Domain exceptions shared by services and the API layer
"""

from typing import Optional


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code or type(self).__name__
        super().__init__(message)


class NotFoundError(DomainError):
    status_code = 404


class ValidationError(DomainError):
    """Deadline passed, event closed or time-slot conflict"""
    status_code = 422


class CapacityExceeded(DomainError):
    status_code = 409


class Blacklisted(DomainError):
    status_code = 403


class StoreError(DomainError):
    status_code = 500
