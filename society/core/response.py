"""
Standard response envelope.

Success: ``{"success": true, "data": ..., "meta": {...}}`` (``meta`` only when
given). Error: ``{"success": false, "error": {"code", "message", "details"?}}``.
Clients branch on ``error.code``; the message text is for humans.
"""
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class ErrorCodes:
    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    USERNAME_EXISTS = "USERNAME_EXISTS"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_STATUS = "INVALID_STATUS"
    MISSING_FIELD = "MISSING_FIELD"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    FORBIDDEN = "FORBIDDEN"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"

    # Relationships
    ALREADY_FRIENDS = "ALREADY_FRIENDS"
    REQUEST_PENDING = "REQUEST_PENDING"
    BLOCKED = "BLOCKED"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Uploads
    UPLOAD_ERROR = "UPLOAD_ERROR"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


def success(data: Any = None, meta: Optional[dict] = None, status: int = 200) -> JSONResponse:
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = {key: value for key, value in meta.items() if value is not None}
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


def error(code: str, message: str, status: int = 400, details: Any = None) -> JSONResponse:
    payload = {"code": code, "message": message}
    if details is not None:
        payload["details"] = details
    return JSONResponse(
        status_code=status,
        content=jsonable_encoder({"success": False, "error": payload}),
    )


def unauthorized(message: str = "Authentication required") -> JSONResponse:
    return error(ErrorCodes.UNAUTHORIZED, message, 401)


def forbidden(message: str = "You don't have permission to access this resource") -> JSONResponse:
    return error(ErrorCodes.FORBIDDEN, message, 403)


def not_found(resource: str = "Resource") -> JSONResponse:
    return error(ErrorCodes.NOT_FOUND, f"{resource} not found", 404)


def conflict(message: str) -> JSONResponse:
    return error(ErrorCodes.ALREADY_EXISTS, message, 409)


def validation_error(message: str, details: Any = None) -> JSONResponse:
    return error(ErrorCodes.VALIDATION_ERROR, message, 400, details)


def server_error(message: str = "An unexpected error occurred") -> JSONResponse:
    return error(ErrorCodes.INTERNAL_ERROR, message, 500)


def rate_limit_error() -> JSONResponse:
    return error(ErrorCodes.RATE_LIMIT_EXCEEDED, "Too many requests, please try again later", 429)
