import logging

from fastapi import APIRouter, Request
from sqlalchemy import select

from society.auth import tokens
from society.auth.models import User
from society.auth.password import hash_password, verify_password
from society.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenQuery,
)
from society.core.errors import ApiError
from society.core.middleware import (
    ApiContext,
    log_error,
    log_info,
    parse_body,
    parse_query,
    with_auth,
    with_optional_auth,
    with_rate_limit,
)
from society.core.response import ErrorCodes, error, not_found, success
from society.users.services import account_payload
from society.utils.avatar import generate_default_avatar_url
from society.utils.email import MAIL_ERRORS, password_reset_email, verification_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, you will receive a password reset link"


def _set_session_cookie(response, ctx: ApiContext, session_id: str):
    response.set_cookie(
        key=ctx.settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=ctx.settings.SESSION_DURATION_SECONDS,
        httponly=True,
        secure=ctx.settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return response


async def _send_verification(ctx: ApiContext, user: User) -> None:
    token = tokens.create_verification_token(ctx.settings, user.id, user.email)
    subject, body = verification_email(ctx.settings.APP_URL, user.display_name, token)
    try:
        await ctx.mailer.send(subject, user.email, body)
    except MAIL_ERRORS as exc:
        # The account exists either way; the user can ask for another email
        log_error(ctx.request_id, "send_verification_email", exc, userId=user.id)


@router.post("/register")
@with_optional_auth
async def register(request: Request, ctx: ApiContext, params: dict):
    """Create an account and sign it in."""
    data = await parse_body(request, RegisterRequest)

    existing = await ctx.db.execute(select(User.id).where(User.email == data.email))
    if existing.first():
        return error(ErrorCodes.EMAIL_EXISTS, "An account with this email already exists", 409)

    existing = await ctx.db.execute(select(User.id).where(User.username == data.username))
    if existing.first():
        return error(ErrorCodes.USERNAME_EXISTS, "This username is already taken", 409)

    user = User(
        email=data.email,
        username=data.username,
        password_hash=hash_password(data.password),
        display_name=data.display_name,
        avatar_url=generate_default_avatar_url(data.display_name),
    )
    ctx.db.add(user)
    await ctx.db.flush()
    session_id = await ctx.sessions.create(user.id)
    await ctx.db.commit()

    log_info(ctx.request_id, "register", userId=user.id)
    await _send_verification(ctx, user)

    response = success({"user": account_payload(user), "sessionId": session_id}, status=201)
    return _set_session_cookie(response, ctx, session_id)


@router.post("/login")
@with_optional_auth
async def login(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, LoginRequest)

    result = await ctx.db.execute(select(User).where(User.email == data.email))
    user = result.scalars().first()
    if not user or not verify_password(data.password, user.password_hash):
        return error(ErrorCodes.INVALID_CREDENTIALS, "Invalid email or password", 401)

    session_id = await ctx.sessions.create(user.id)
    await ctx.db.commit()
    await ctx.sessions.cache_user(user)

    log_info(ctx.request_id, "login", userId=user.id)
    response = success({"user": account_payload(user), "sessionId": session_id})
    return _set_session_cookie(response, ctx, session_id)


@router.post("/logout")
@with_optional_auth
async def logout(request: Request, ctx: ApiContext, params: dict):
    session_id = request.cookies.get(ctx.settings.SESSION_COOKIE_NAME)
    authorization = request.headers.get("authorization", "")
    if not session_id and authorization.startswith("Bearer "):
        session_id = authorization[len("Bearer "):].strip()

    if session_id:
        await ctx.sessions.invalidate(session_id)
        await ctx.db.commit()

    response = success({"message": "Logged out successfully"})
    response.delete_cookie(ctx.settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/me")
@with_auth
async def me(request: Request, ctx: ApiContext, params: dict):
    user = await ctx.db.get(User, ctx.user_id)
    if not user:
        return not_found("User")
    return success(account_payload(user))


@router.get("/verify-email")
@with_optional_auth
async def verify_email(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, TokenQuery)
    payload = tokens.decode_token(ctx.settings, query.token, tokens.VERIFY_EMAIL)
    user = await ctx.db.get(User, payload["sub"]) if payload else None
    if not user or payload.get("email") != user.email:
        return error(ErrorCodes.INVALID_TOKEN, "Invalid or expired verification link", 400)

    if user.email_verified:
        return success({"message": "Email already verified"})

    user.email_verified = True
    await ctx.db.commit()
    await ctx.sessions.clear_user_cache(user.id)
    return success({"message": "Email verified successfully"})


@router.post("/resend-verification")
@with_auth
@with_rate_limit(limit=1, window_seconds=300, key_prefix="resend-verification")
async def resend_verification(request: Request, ctx: ApiContext, params: dict):
    user = await ctx.db.get(User, ctx.user_id)
    if not user:
        return not_found("User")
    if user.email_verified:
        return error(ErrorCodes.ALREADY_VERIFIED, "Email is already verified", 400)

    await _send_verification(ctx, user)
    return success({"message": "Verification email sent"})


@router.post("/forgot-password")
@with_optional_auth
@with_rate_limit(limit=5, window_seconds=3600, key_prefix="forgot-password")
async def forgot_password(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, ForgotPasswordRequest)

    result = await ctx.db.execute(select(User).where(User.email == data.email))
    user = result.scalars().first()
    if user:
        token = tokens.create_reset_token(ctx.settings, user.id, user.password_hash)
        subject, body = password_reset_email(ctx.settings.APP_URL, user.display_name, token)
        try:
            await ctx.mailer.send(subject, user.email, body)
        except MAIL_ERRORS as exc:
            # Same answer either way so the endpoint does not reveal accounts
            log_error(ctx.request_id, "send_password_reset_email", exc, userId=user.id)

    return success({"message": FORGOT_PASSWORD_MESSAGE})


async def _user_for_reset_token(ctx: ApiContext, token: str) -> User:
    payload = tokens.decode_token(ctx.settings, token, tokens.RESET_PASSWORD)
    user = await ctx.db.get(User, payload["sub"]) if payload else None
    if not user or payload.get("pwd") != tokens.password_fingerprint(user.password_hash):
        raise ApiError("Invalid or expired reset link", code=ErrorCodes.INVALID_TOKEN, status=400)
    return user


@router.get("/reset-password")
@with_optional_auth
async def check_reset_token(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, TokenQuery)
    await _user_for_reset_token(ctx, query.token)
    return success({"valid": True})


@router.post("/reset-password")
@with_optional_auth
async def reset_password(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, ResetPasswordRequest)
    user = await _user_for_reset_token(ctx, data.token)

    user.password_hash = hash_password(data.password)
    await ctx.sessions.invalidate_all(user.id)
    await ctx.db.commit()
    await ctx.sessions.clear_user_cache(user.id)

    log_info(ctx.request_id, "reset_password", userId=user.id)
    return success({"message": "Password has been reset successfully"})
