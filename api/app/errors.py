"""Domain error taxonomy.

Each error is an ``HTTPException`` so routers and services can raise it directly
and FastAPI renders the usual ``{"detail": ...}`` body.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class Unauthenticated(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You don't have permission to perform this action"


class SelfActionForbidden(ForbiddenError):
    default_detail = "You cannot perform this action on your own account"


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class AlreadyEngaged(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Already engaged"


class NotEngaged(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Not engaged"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class InternalError(DomainError):
    """Unexpected storage failure. The detail never carries internals."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Something went wrong. Please try again."
