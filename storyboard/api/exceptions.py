"""
API Exceptions and Error Handlers.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from storyboard.models import InvalidTransitionError
from storyboard.services.exceptions import (
    StoryboardError,
    InvalidIndexError,
    ItemBusyError,
    ReferencesNotReadyError,
    SessionBusyError,
)


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str
    detail: Optional[str] = None
    code: str
    status_code: int


class APIError(Exception):
    """Base API exception."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            detail=self.detail,
            code=self.code,
            status_code=self.status_code,
        )


class ValidationError(APIError):
    """400 - Bad Request / Validation Error."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class NotFoundError(APIError):
    """404 - Resource Not Found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class SessionNotFoundError(NotFoundError):
    """404 - Session Not Found."""

    def __init__(self, session_id: str):
        super().__init__(resource="Session", resource_id=session_id)


class ConflictError(APIError):
    """409 - Operation conflicts with work already in progress."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


def from_storyboard_error(exc: StoryboardError) -> APIError:
    """Map a workflow error onto its HTTP status."""
    if isinstance(exc, (SessionBusyError, ItemBusyError)):
        return ConflictError(exc.message, exc.detail)
    if isinstance(exc, ReferencesNotReadyError):
        return APIError(
            exc.message,
            code="REFERENCES_NOT_READY",
            status_code=status.HTTP_409_CONFLICT,
            detail=exc.detail,
        )
    if isinstance(exc, InvalidIndexError):
        return APIError(
            exc.message,
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.detail,
        )
    return ValidationError(exc.message, exc.detail)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def storyboard_error_handler(request: Request, exc: StoryboardError) -> JSONResponse:
    """Handle workflow precondition errors raised by the services."""
    return await api_error_handler(request, from_storyboard_error(exc))


async def transition_error_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    """Handle item state machine violations."""
    return await api_error_handler(request, ConflictError(str(exc)))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if request.app.debug else None,
            "code": "INTERNAL_ERROR",
            "status_code": 500,
        },
    )
