import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.models import User
from society.core.errors import NotFoundError
from society.friends.models import Follow, Friendship
from society.friends.services import blocked_ids, friend_ids, following_ids, friendship_between
from society.posts.models import Post

logger = logging.getLogger(__name__)


def author_summary(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
        "avatarUrl": user.avatar_url,
        "isVerified": bool(user.is_verified),
    }


def public_profile(user: User) -> dict:
    return {
        **author_summary(user),
        "bio": user.bio,
        "coverUrl": user.cover_url,
        "isPrivate": bool(user.is_private),
        "createdAt": user.created_at,
    }


def account_payload(user: User) -> dict:
    """Everything the owner of the account may see about it."""
    return {
        **public_profile(user),
        "email": user.email,
        "emailVerified": bool(user.email_verified),
        "updatedAt": user.updated_at,
    }


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    return user


async def load_users(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}


def _like(term: str) -> str:
    return f"%{term.lower()}%"


def search_clause(term: str):
    pattern = _like(term)
    return or_(func.lower(User.username).like(pattern), func.lower(User.display_name).like(pattern))


async def search_users(db: AsyncSession, term: str, limit: int, offset: int = 0):
    stmt = select(User)
    if term:
        stmt = stmt.where(search_clause(term))
    total = (await db.execute(stmt.with_only_columns(func.count(User.id)).order_by(None))).scalar_one()
    result = await db.execute(stmt.order_by(User.username).offset(offset).limit(limit))
    return result.scalars().all(), total


async def mention_candidates(db: AsyncSession, prefix: str, exclude_id: str, limit: int = 8) -> List[User]:
    pattern = f"{prefix.lower()}%"
    result = await db.execute(
        select(User)
        .where(
            User.id != exclude_id,
            or_(func.lower(User.username).like(pattern), func.lower(User.display_name).like(pattern)),
        )
        .order_by(User.username)
        .limit(limit)
    )
    return result.scalars().all()


async def profile_counts(db: AsyncSession, user_id: str) -> dict:
    posts = await db.scalar(select(func.count(Post.id)).where(Post.user_id == user_id))
    friends = await db.scalar(
        select(func.count(Friendship.id)).where(
            Friendship.status == "accepted",
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
        )
    )
    followers = await db.scalar(select(func.count(Follow.id)).where(Follow.following_id == user_id))
    following = await db.scalar(select(func.count(Follow.id)).where(Follow.follower_id == user_id))
    return {
        "postsCount": posts or 0,
        "friendsCount": friends or 0,
        "followersCount": followers or 0,
        "followingCount": following or 0,
    }


async def friendship_status(db: AsyncSession, viewer_id: Optional[str], user_id: str) -> Optional[str]:
    """
    Relationship as seen by ``viewer_id``: ``accepted``, ``pending_sent``,
    ``pending_received``, ``blocked`` or None.
    """
    if not viewer_id or viewer_id == user_id:
        return None
    friendship = await friendship_between(db, viewer_id, user_id)
    if not friendship:
        return None
    if friendship.status == "pending":
        return "pending_sent" if friendship.requester_id == viewer_id else "pending_received"
    return friendship.status


async def is_following(db: AsyncSession, follower_id: Optional[str], user_id: str) -> bool:
    if not follower_id:
        return False
    result = await db.execute(
        select(Follow.id).where(Follow.follower_id == follower_id, Follow.following_id == user_id)
    )
    return result.first() is not None


async def suggestions(db: AsyncSession, user_id: str, limit: int) -> List[dict]:
    """
    People the user might know: not themself, not already a friend or pending
    request, not followed, not blocked either way, not private. Verified
    accounts first, then newest; each carries its mutual friend count.
    """
    my_friends = await friend_ids(db, user_id)

    result = await db.execute(
        select(Friendship).where(
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id)
        )
    )
    connected = {f.other(user_id) for f in result.scalars().all()}
    excluded = connected | await following_ids(db, user_id) | await blocked_ids(db, user_id) | {user_id}

    result = await db.execute(
        select(User)
        .where(User.id.not_in(excluded), User.is_private.is_(False))
        .order_by(User.is_verified.desc(), User.created_at.desc())
        .limit(limit)
    )
    candidates = result.scalars().all()

    items = []
    for candidate in candidates:
        mutual = len(my_friends & await friend_ids(db, candidate.id))
        items.append({
            **author_summary(candidate),
            "bio": candidate.bio,
            "mutualFriendsCount": mutual,
            "reason": "mutual_friends" if mutual else ("verified" if candidate.is_verified else "new_user"),
        })
    return items
