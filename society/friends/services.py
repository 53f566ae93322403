from typing import Optional, Set

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from society.friends.models import Block, Follow, Friendship


def _pair(a: str, b: str):
    return or_(
        and_(Friendship.requester_id == a, Friendship.addressee_id == b),
        and_(Friendship.requester_id == b, Friendship.addressee_id == a),
    )


async def friendship_between(db: AsyncSession, a: str, b: str) -> Optional[Friendship]:
    result = await db.execute(select(Friendship).where(_pair(a, b)))
    return result.scalars().first()


async def delete_friendship(db: AsyncSession, a: str, b: str) -> int:
    result = await db.execute(delete(Friendship).where(_pair(a, b)))
    return result.rowcount


async def friend_ids(db: AsyncSession, user_id: str) -> Set[str]:
    """Ids of everyone with an accepted friendship with ``user_id``."""
    result = await db.execute(
        select(Friendship).where(
            Friendship.status == "accepted",
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
        )
    )
    return {f.other(user_id) for f in result.scalars().all()}


async def following_ids(db: AsyncSession, user_id: str) -> Set[str]:
    result = await db.execute(select(Follow.following_id).where(Follow.follower_id == user_id))
    return set(result.scalars().all())


async def blocked_ids(db: AsyncSession, user_id: str) -> Set[str]:
    """Users blocked by ``user_id`` or who blocked them."""
    result = await db.execute(
        select(Block).where(or_(Block.blocker_id == user_id, Block.blocked_id == user_id))
    )
    return {
        b.blocked_id if b.blocker_id == user_id else b.blocker_id
        for b in result.scalars().all()
    }


async def is_blocked_between(db: AsyncSession, a: str, b: str) -> bool:
    result = await db.execute(
        select(Block.id).where(
            or_(
                and_(Block.blocker_id == a, Block.blocked_id == b),
                and_(Block.blocker_id == b, Block.blocked_id == a),
            )
        )
    )
    return result.first() is not None
