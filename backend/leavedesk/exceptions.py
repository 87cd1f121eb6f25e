import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidLeaveRequest(AppError):
    """Submission payload violates a shape rule (days, date span)."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientBalance(AppError):
    """Requested days exceed the employee's balance for the leave type."""

    status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(AppError):
    """No session, or the session token is unknown or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    """The acting employee's role does not permit the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    """Decision target, request or employee profile is missing."""

    status_code = status.HTTP_404_NOT_FOUND


class AlreadyProcessed(AppError):
    """The request has already left PENDING."""

    status_code = status.HTTP_409_CONFLICT


class PartialApplyError(AppError):
    """A request was marked APPROVED but its balance debit did not land.

    Needs operator reconciliation rather than a user retry.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, request_id: object = None) -> None:
        self.request_id = request_id
        super().__init__(message)


class StoreUnavailable(AppError):
    """The database could not be reached or timed out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    else:
        logger.info("%s %s rejected: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
