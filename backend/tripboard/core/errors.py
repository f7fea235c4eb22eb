"""
Typed service errors.

Each error is an ``HTTPException`` so FastAPI renders it as
``{"detail": <message>}`` with the matching status code, while services
and tests can still catch the specific kind.
"""
from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base class for errors raised by the service layer."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(status_code=self.http_status, detail=detail)


class NotFoundError(ServiceError):
    http_status = status.HTTP_404_NOT_FOUND


class ForbiddenError(ServiceError):
    http_status = status.HTTP_403_FORBIDDEN


class BadRequestError(ServiceError):
    http_status = status.HTTP_400_BAD_REQUEST


class ConflictError(ServiceError):
    http_status = status.HTTP_409_CONFLICT
