import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.models import Session, User
from society.config import Settings
from society.core.identity import SessionUser
from society.db.mongo import CacheError, MongoCache
from society.utils.dates import epoch_ms, utcnow

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


class SessionStore:
    """
    Opaque session ids backed by the ``sessions`` table, with the cache in
    front of it. The table is the source of truth: a cache failure is logged
    and the lookup falls through to the database.
    """

    def __init__(self, db: AsyncSession, cache: MongoCache, settings: Settings):
        self.db = db
        self.cache = cache
        self.settings = settings

    async def create(self, user_id: str) -> str:
        session_id = secrets.token_hex(32)
        expires_at = utcnow() + timedelta(seconds=self.settings.SESSION_DURATION_SECONDS)
        self.db.add(Session(id=session_id, user_id=user_id, expires_at=expires_at))
        await self.db.flush()
        await self._remember(session_id, user_id, expires_at)
        return session_id

    async def _remember(self, session_id: str, user_id: str, expires_at) -> None:
        # A failed eviction on logout stays live only until this TTL runs out
        ttl = min(self.settings.SESSION_CACHE_SECONDS, self.settings.SESSION_DURATION_SECONDS)
        try:
            await self.cache.set(
                session_key(session_id),
                {"userId": user_id, "expiresAt": epoch_ms(expires_at)},
                ttl,
            )
        except CacheError as e:
            logger.warning(f"Could not cache session for user {user_id}: {e}")

    async def get_session_user_id(self, session_id: str) -> Optional[str]:
        """User id of a live session, or None when unknown or expired."""
        try:
            cached = await self.cache.get(session_key(session_id))
        except CacheError as e:
            logger.warning(f"Session cache unavailable, reading database: {e}")
            cached = None

        if cached:
            if cached["expiresAt"] > epoch_ms():
                return cached["userId"]
            return None

        result = await self.db.execute(select(Session).where(Session.id == session_id))
        session = result.scalars().first()
        if not session or session.expires_at <= utcnow():
            return None
        await self._remember(session.id, session.user_id, session.expires_at)
        return session.user_id

    async def get_user(self, user_id: str) -> Optional[SessionUser]:
        try:
            cached = await self.cache.get(user_key(user_id))
        except CacheError as e:
            logger.warning(f"User cache unavailable, reading database: {e}")
            cached = None
        if cached:
            return SessionUser.from_cache(cached)

        user = await self.db.get(User, user_id)
        if not user:
            return None
        return SessionUser.from_model(user)

    async def cache_user(self, user: User) -> None:
        try:
            await self.cache.set(
                user_key(user.id),
                SessionUser.from_model(user).to_cache(),
                self.settings.USER_CACHE_SECONDS,
            )
        except CacheError as e:
            logger.warning(f"Could not cache user {user.id}: {e}")

    async def resolve_cookie(self, session_id: str) -> Optional[SessionUser]:
        user_id = await self.get_session_user_id(session_id)
        if not user_id:
            return None
        return await self.get_user(user_id)

    async def resolve_bearer(self, authorization: str) -> Optional[str]:
        if not authorization.startswith(BEARER_PREFIX):
            return None
        session_id = authorization[len(BEARER_PREFIX):].strip()
        if not session_id:
            return None
        return await self.get_session_user_id(session_id)

    async def invalidate(self, session_id: str) -> None:
        await self.db.execute(delete(Session).where(Session.id == session_id))
        await self._forget(session_key(session_id))

    async def invalidate_all(self, user_id: str) -> None:
        result = await self.db.execute(select(Session.id).where(Session.user_id == user_id))
        session_ids = result.scalars().all()
        await self.db.execute(delete(Session).where(Session.user_id == user_id))
        for session_id in session_ids:
            await self._forget(session_key(session_id))
        logger.info(f"Invalidated {len(session_ids)} sessions for user {user_id}")

    async def clear_user_cache(self, user_id: str) -> None:
        await self._forget(user_key(user_id))

    async def _forget(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except CacheError as e:
            # The entry expires on its own; the database row is already gone
            logger.warning(f"Could not evict {key} from cache: {e}")
