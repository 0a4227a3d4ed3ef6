import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    error: str
    detail: str | None = None
    field: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class SourceUnavailable(AppError):
    """PeopleForce or the Slack roster could not be read. Fatal to a sync pass."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class AccountMutationFailed(AppError):
    """Setting or clearing one account's status failed."""

    def __init__(self, account_id: str, reason: str) -> None:
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Status update failed for {account_id}: {reason}", status_code=status.HTTP_502_BAD_GATEWAY)


class PermissionDegraded(AppError):
    """The configured token lacks the capability to read a status."""

    def __init__(self, account_id: str, reason: str) -> None:
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Cannot read status of {account_id}: {reason}", status_code=status.HTTP_403_FORBIDDEN)


class ValidationFailed(AppError):
    """Leave form input is invalid. `field` names the offending form block."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class RemoteRejected(AppError):
    """PeopleForce refused to create a leave request."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            field=exc.field if isinstance(exc, ValidationFailed) else None,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="RequestValidationError",
            detail=str(exc.errors()),
            field=".".join(str(part) for part in first.get("loc", ())) or None,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
