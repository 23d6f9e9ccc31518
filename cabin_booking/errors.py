"""
Domain error taxonomy.

Services raise these; the HTTP layer renders them with the same
``{"detail": ...}`` body FastAPI uses for ``HTTPException``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class BookingError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"


class PastDateError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Cannot book past dates"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ForbiddenError(BookingError):
    """Never carries detail, so callers cannot test for existence."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"

    def __init__(self) -> None:
        super().__init__(None)


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Scheduling conflict"


async def _booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _request_validation_handler(
    _: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, _booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
