import logging

from fastapi import APIRouter, Request
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError

from society.auth.models import User
from society.core.errors import BadRequestError, NotFoundError
from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth
from society.core.response import conflict, not_found, success
from society.friends.models import Block, Follow
from society.friends.schemas import BlocksQuery, TargetUserQuery, TargetUserRequest
from society.friends.services import delete_friendship
from society.users.services import author_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.get("")
@with_auth
async def list_blocks(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, BlocksQuery)
    limit = clamp_limit(query.limit, 100)

    rows = (await ctx.db.execute(
        select(Block, User)
        .join(User, User.id == Block.blocked_id)
        .where(Block.blocker_id == ctx.user_id)
        .order_by(Block.created_at.desc())
        .offset(query.offset)
        .limit(limit + 1)
    )).all()
    has_more = len(rows) > limit

    items = [{"user": author_summary(row.User), "blockedAt": row.Block.created_at} for row in rows[:limit]]
    return success(items, meta={"limit": limit, "hasMore": has_more})


@router.post("")
@with_auth
async def block_user(request: Request, ctx: ApiContext, params: dict):
    """Block a user; any friendship and follows between the two go away."""
    data = await parse_body(request, TargetUserRequest)
    if not data.user_id:
        raise BadRequestError("User ID is required")
    if data.user_id == ctx.user_id:
        raise BadRequestError("You cannot block yourself")

    if not await ctx.db.get(User, data.user_id):
        return not_found("User")

    existing = await ctx.db.execute(
        select(Block.id).where(Block.blocker_id == ctx.user_id, Block.blocked_id == data.user_id)
    )
    if existing.first():
        return conflict("User is already blocked")

    try:
        ctx.db.add(Block(blocker_id=ctx.user_id, blocked_id=data.user_id))
        await ctx.db.flush()
    except IntegrityError:
        await ctx.db.rollback()
        return conflict("User is already blocked")

    await delete_friendship(ctx.db, ctx.user_id, data.user_id)
    await ctx.db.execute(
        delete(Follow).where(
            or_(
                and_(Follow.follower_id == ctx.user_id, Follow.following_id == data.user_id),
                and_(Follow.follower_id == data.user_id, Follow.following_id == ctx.user_id),
            )
        )
    )
    await ctx.db.commit()
    logger.info(f"User {ctx.user_id} blocked {data.user_id}")
    return success({"blocked": True})


@router.delete("")
@with_auth
async def unblock_user(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, TargetUserQuery)
    if not query.user_id:
        raise BadRequestError("User ID is required")

    result = await ctx.db.execute(
        select(Block).where(Block.blocker_id == ctx.user_id, Block.blocked_id == query.user_id)
    )
    block = result.scalars().first()
    if not block:
        raise NotFoundError(message="User is not blocked")

    await ctx.db.delete(block)
    await ctx.db.commit()
    return success({"blocked": False})
