"""
Request contract layer.

Route handlers are written as ``async def handler(request, ctx, params)`` and
wrapped with ``with_auth`` or ``with_optional_auth``, which:

- assign a trace id used only in logs,
- open one database session for the request,
- resolve the caller (cookie session, then bearer token),
- render ``ApiError`` as the error envelope,
- turn anything unexpected into a generic 500 after logging it.
"""
import json
import logging
import random
import string
import time
import traceback
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from fastapi import Request, Response
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.sessions import SessionStore
from society.core.errors import ApiError, RequestValidationFailed, validation_details
from society.core.identity import Anonymous, Identity, ResolvedUser, SessionUser, resolve_identity
from society.core.response import rate_limit_error, server_error, unauthorized
from society.db.mongo import CacheError
from society.resources import Resources
from society.utils.dates import epoch_ms, utcnow

logger = logging.getLogger(__name__)

Schema = TypeVar("Schema", bound=BaseModel)
Handler = Callable[[Request, "ApiContext", Dict[str, str]], Awaitable[Response]]

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_request_id() -> str:
    """``req_<base36 epoch ms>_<7 random base36 chars>``"""
    suffix = "".join(random.choices(_BASE36, k=7))
    return f"req_{_base36(int(time.time() * 1000))}_{suffix}"


def log_error(request_id: str, operation: str, exc: BaseException, **meta) -> None:
    entry = {
        "level": "error",
        "requestId": request_id,
        "operation": operation,
        "error": str(exc) or exc.__class__.__name__,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        **meta,
        "timestamp": utcnow().isoformat() + "Z",
    }
    logger.error(json.dumps(entry, default=str))


def log_info(request_id: str, operation: str, **meta) -> None:
    entry = {
        "level": "info",
        "requestId": request_id,
        "operation": operation,
        **meta,
        "timestamp": utcnow().isoformat() + "Z",
    }
    logger.info(json.dumps(entry, default=str))


@dataclass
class ApiContext:
    request_id: str
    identity: Identity
    db: AsyncSession
    resources: Resources
    sessions: SessionStore

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.user_id

    @property
    def user(self) -> Optional[SessionUser]:
        """Full profile, only when the caller came in through a cookie session."""
        if isinstance(self.identity, ResolvedUser):
            return self.identity.user
        return None

    @property
    def is_authenticated(self) -> bool:
        return not isinstance(self.identity, Anonymous)

    @property
    def settings(self):
        return self.resources.settings

    @property
    def cache(self):
        return self.resources.cache

    @property
    def storage(self):
        return self.resources.storage

    @property
    def mailer(self):
        return self.resources.mailer


def _wrap(handler: Handler, require_user: bool) -> Callable[[Request], Awaitable[Response]]:
    operation = handler.__name__

    async def endpoint(request: Request) -> Response:
        request_id = generate_request_id()
        resources: Resources = request.app.state.resources
        try:
            async with resources.sessionmaker() as db:
                sessions = SessionStore(db, resources.cache, resources.settings)
                identity = await resolve_identity(request, sessions, resources.settings.SESSION_COOKIE_NAME)
                if require_user and isinstance(identity, Anonymous):
                    return unauthorized()

                ctx = ApiContext(
                    request_id=request_id,
                    identity=identity,
                    db=db,
                    resources=resources,
                    sessions=sessions,
                )
                params = dict(request.path_params)
                try:
                    return await handler(request, ctx, params)
                except ApiError as exc:
                    await db.rollback()
                    return exc.to_response()
        except Exception as exc:
            log_error(request_id, operation, exc, method=request.method, path=request.url.path)
            return server_error()

    endpoint.__name__ = operation
    endpoint.__doc__ = handler.__doc__
    return endpoint


def with_auth(handler: Handler):
    """The caller must be signed in; anonymous requests get 401 and never reach ``handler``."""
    return _wrap(handler, require_user=True)


def with_optional_auth(handler: Handler):
    """Like ``with_auth`` but anonymous callers reach ``handler`` with an ``Anonymous`` identity."""
    return _wrap(handler, require_user=False)


async def parse_body(request: Request, schema: Type[Schema], allow_empty: bool = False) -> Schema:
    """
    Validate the JSON body against ``schema``. With ``allow_empty`` a missing
    body counts as ``{}``.
    """
    if allow_empty and not (await request.body()).strip():
        return validate({}, schema, "Invalid input")
    try:
        raw = await request.json()
    except ValueError:
        raise RequestValidationFailed("Invalid JSON body")
    return validate(raw, schema, "Invalid input")


def parse_query(request: Request, schema: Type[Schema]) -> Schema:
    return validate(dict(request.query_params), schema, "Invalid parameters")


def validate(raw: Any, schema: Type[Schema], message: str) -> Schema:
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise RequestValidationFailed(message, details=validation_details(e.errors()))


def clamp_limit(limit: int, maximum: int) -> int:
    return max(1, min(limit, maximum))


async def check_rate_limit(cache, key: str, limit: int = 100, window_seconds: int = 60) -> bool:
    """
    Count one request against ``key`` and say whether it may proceed.

    Window record is ``{count, resetAt}`` (``resetAt`` in epoch ms). The first
    request of a window sets count to 1; a request is refused once the count
    has reached ``limit``. If the cache is unreachable the request is let
    through and the failure logged.
    """
    cache_key = f"ratelimit:{key}"
    now = epoch_ms()
    try:
        record = await cache.get(cache_key)
        if not record or now > record["resetAt"]:
            await cache.set(cache_key, {"count": 1, "resetAt": now + window_seconds * 1000}, window_seconds)
            return True

        if record["count"] >= limit:
            return False

        remaining = max(1, -(-(record["resetAt"] - now) // 1000))
        await cache.set(cache_key, {"count": record["count"] + 1, "resetAt": record["resetAt"]}, remaining)
        return True
    except CacheError as exc:
        log_error("ratelimit", "check_rate_limit", exc, key=cache_key)
        return True


def with_rate_limit(limit: int = 100, window_seconds: int = 60, key_prefix: str = "api"):
    """Refuse with 429 once the caller exceeds ``limit`` requests per window."""

    def decorator(handler: Handler) -> Handler:
        @wraps(handler)
        async def limited(request: Request, ctx: ApiContext, params: Dict[str, str]) -> Response:
            subject = ctx.user_id or client_address(request)
            if not await check_rate_limit(ctx.cache, f"{key_prefix}:{subject}", limit, window_seconds):
                log_info(ctx.request_id, handler.__name__, rateLimited=key_prefix)
                return rate_limit_error()
            return await handler(request, ctx, params)

        return limited

    return decorator


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
