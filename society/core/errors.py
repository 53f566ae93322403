"""Domain errors rendered as envelopes, plus the app-wide exception handlers.

Invariants:
    - ApiError carries an error code from ErrorCodes and the HTTP status
    - RequestValidationError -> VALIDATION_ERROR with field-level details
    - Anything uncaught -> INTERNAL_ERROR, never leaks internal details
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from society.core.response import ErrorCodes, error, server_error

logger = logging.getLogger(__name__)


class ApiError(Exception):
    code = ErrorCodes.INTERNAL_ERROR
    status = 500
    message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.status = status or self.status
        self.details = details
        super().__init__(self.message)

    def to_response(self):
        return error(self.code, self.message, self.status, self.details)


class BadRequestError(ApiError):
    code = ErrorCodes.INVALID_REQUEST
    status = 400
    message = "Invalid request"


class RequestValidationFailed(ApiError):
    code = ErrorCodes.VALIDATION_ERROR
    status = 400
    message = "Invalid input"


class ForbiddenError(ApiError):
    code = ErrorCodes.FORBIDDEN
    status = 403
    message = "You don't have permission to access this resource"


class NotFoundError(ApiError):
    code = ErrorCodes.NOT_FOUND
    status = 404

    def __init__(self, resource: str = "Resource", message: Optional[str] = None):
        super().__init__(message or f"{resource} not found")


class ConflictError(ApiError):
    code = ErrorCodes.ALREADY_EXISTS
    status = 409
    message = "Already exists"


class RateLimitedError(ApiError):
    code = ErrorCodes.RATE_LIMIT_EXCEEDED
    status = 429
    message = "Too many requests, please try again later"


def validation_details(errors) -> list:
    """Flatten pydantic issues into ``[{field, message, type}]``, one per failing field."""
    details = []
    for e in errors:
        loc = [str(part) for part in e.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({
            "field": ".".join(loc),
            "message": e.get("msg", "Invalid value"),
            "type": e.get("type", "value_error"),
        })
    return details


def register_error_handlers(app: FastAPI) -> None:
    """Register global handlers so no response leaves the API without the envelope."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return error(
            ErrorCodes.VALIDATION_ERROR,
            "Invalid input",
            status.HTTP_400_BAD_REQUEST,
            validation_details(exc.errors()),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error(ErrorCodes.NOT_FOUND, "Resource not found", 404)
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            return error(ErrorCodes.UNAUTHORIZED, "Authentication required", 401)
        if exc.status_code == status.HTTP_403_FORBIDDEN:
            return error(ErrorCodes.FORBIDDEN, "You don't have permission to access this resource", 403)
        if exc.status_code >= 500:
            return server_error()
        return error(ErrorCodes.INVALID_REQUEST, str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return server_error()
