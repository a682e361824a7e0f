"""Typed domain errors raised by the service layer.

The API layer renders them through a single exception handler in
``app.main``; services never catch-and-log them.
"""
from fastapi import status


class InkwellError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(InkwellError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(InkwellError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(InkwellError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class ConcurrencyError(InkwellError):
    """Optimistic-lock version mismatch. Retry against a fresh read."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource was modified concurrently, reload and retry"


class PermissionDeniedError(InkwellError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed"
