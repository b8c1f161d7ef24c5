from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class FieldError(BaseModel):
    """A single field-level validation failure."""

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    errors: list[FieldError] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class PayloadValidationError(AppError):
    """Malformed or missing payload field. Carries per-field detail."""

    def __init__(self, message: str, errors: list[FieldError] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.errors = errors or []


class NotFoundError(AppError):
    """Envelope is absent or outside the actor's scope."""

    def __init__(self, message: str = "Request not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class ScopeError(AppError):
    """The actor's visibility scope cannot be resolved."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class ForbiddenError(AppError):
    """The envelope is visible but the actor's role lacks the right."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotEditableError(ForbiddenError):
    """Field edit attempted outside the role/status window."""


class NoFieldsToUpdateError(AppError):
    def __init__(self, message: str = "No recognized fields to update") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidTargetStatusError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class IllegalTransitionError(AppError):
    """Target status is not reachable from the stored status for this actor."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class DuplicateRequestError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class PersistenceError(AppError):
    """Database failure that survived the retry."""

    def __init__(self, message: str = "Database error while saving the request") -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    errors = exc.errors if isinstance(exc, PayloadValidationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            errors=errors,
        ).model_dump(),
    )


def _field_errors(raw: list[dict[str, Any]]) -> list[FieldError]:
    return [
        FieldError(
            field=".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            message=err.get("msg", "Invalid value"),
        )
        for err in raw
    ]


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail="Request validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=_field_errors(list(exc.errors())),
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
