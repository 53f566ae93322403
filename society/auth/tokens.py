"""
Signed single-purpose tokens for email verification and password reset.

Tokens are HS256 JWTs carrying ``sub`` (user id), ``purpose`` and ``exp``.
Reset tokens also carry a fingerprint of the password hash they were issued
against, so they stop working as soon as the password changes.
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from society.config import Settings

logger = logging.getLogger(__name__)

VERIFY_EMAIL = "verify_email"
RESET_PASSWORD = "reset_password"


def password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_token(settings: Settings, user_id: str, purpose: str, expires_delta: timedelta, **claims) -> str:
    to_encode = dict(claims)
    to_encode.update({
        "sub": user_id,
        "purpose": purpose,
        "exp": datetime.now(timezone.utc) + expires_delta,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(settings: Settings, token: str, purpose: str) -> Optional[dict]:
    """
    Return the payload if ``token`` is valid, unexpired and issued for ``purpose``;
    otherwise None.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token rejected: {e}")
        return None

    if payload.get("purpose") != purpose or not payload.get("sub"):
        logger.warning(f"Token rejected: wrong purpose or missing subject (wanted {purpose})")
        return None
    return payload


def create_verification_token(settings: Settings, user_id: str, email: str) -> str:
    return create_token(
        settings,
        user_id,
        VERIFY_EMAIL,
        timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
        email=email,
    )


def create_reset_token(settings: Settings, user_id: str, password_hash: str) -> str:
    return create_token(
        settings,
        user_id,
        RESET_PASSWORD,
        timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        pwd=password_fingerprint(password_hash),
    )
