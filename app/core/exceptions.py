"""
Service-layer errors for Double M Arena.

Services raise these; API routes translate them into HTTP responses.
"""

from fastapi import status


class ServiceError(Exception):
    """Base error carrying a client-facing message and an HTTP status."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    """Malformed or disallowed field."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ServiceError):
    """Current state already satisfies or contradicts the request."""

    status_code = status.HTTP_409_CONFLICT


class NotFoundError(ServiceError):
    """An id does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ServiceError):
    """Caller is not allowed to perform the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class CapacityExceededError(ServiceError):
    """Team roster is full."""

    status_code = status.HTTP_409_CONFLICT
