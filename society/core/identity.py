"""
Who is calling: resolved from the session cookie, else from a bearer token.

A cookie session yields the full profile (``ResolvedUser``). A bearer token
only proves the user id (``ResolvedMinimal``), so code that needs display
fields must check which variant it got instead of reading empty placeholders.
"""
from dataclasses import asdict, dataclass
from typing import Optional, Union

from fastapi import Request


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    is_verified: bool = False
    is_private: bool = False
    email_verified: bool = False

    @classmethod
    def from_model(cls, user) -> "SessionUser":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            bio=user.bio,
            is_verified=bool(user.is_verified),
            is_private=bool(user.is_private),
            email_verified=bool(user.email_verified),
        )

    def to_cache(self) -> dict:
        return asdict(self)

    @classmethod
    def from_cache(cls, data: dict) -> "SessionUser":
        return cls(**data)


@dataclass(frozen=True)
class ResolvedUser:
    user: SessionUser

    @property
    def user_id(self) -> str:
        return self.user.id


@dataclass(frozen=True)
class ResolvedMinimal:
    user_id: str


@dataclass(frozen=True)
class Anonymous:
    user_id: None = None


Identity = Union[ResolvedUser, ResolvedMinimal, Anonymous]


async def resolve_identity(request: Request, sessions, cookie_name: str) -> Identity:
    """Read-only lookup; never creates, extends or deletes a session."""
    session_id = request.cookies.get(cookie_name)
    if session_id:
        user = await sessions.resolve_cookie(session_id)
        if user is not None:
            return ResolvedUser(user)

    authorization = request.headers.get("authorization")
    if authorization:
        user_id = await sessions.resolve_bearer(authorization)
        if user_id:
            return ResolvedMinimal(user_id)

    return Anonymous()
