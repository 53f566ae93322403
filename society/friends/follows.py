from fastapi import APIRouter, Request
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from society.auth.models import User
from society.core.errors import BadRequestError, NotFoundError
from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth
from society.core.response import ErrorCodes, conflict, error, not_found, success
from society.friends.models import Follow
from society.friends.schemas import FollowsQuery, FollowType, TargetUserQuery, TargetUserRequest
from society.friends.services import following_ids, is_blocked_between
from society.notifications.services import create_notification
from society.users.services import author_summary

router = APIRouter(prefix="/follows", tags=["follows"])


async def _followers_count(ctx: ApiContext, user_id: str) -> int:
    return await ctx.db.scalar(select(func.count(Follow.id)).where(Follow.following_id == user_id)) or 0


@router.get("")
@with_auth
async def list_follows(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, FollowsQuery)
    limit = clamp_limit(query.limit, 50)
    user_id = query.user_id or ctx.user_id

    if query.type == FollowType.FOLLOWING:
        stmt = select(Follow, User).join(User, User.id == Follow.following_id).where(Follow.follower_id == user_id)
    else:
        stmt = select(Follow, User).join(User, User.id == Follow.follower_id).where(Follow.following_id == user_id)
    stmt = stmt.order_by(Follow.created_at.desc()).offset(query.offset).limit(limit + 1)

    rows = (await ctx.db.execute(stmt)).all()
    has_more = len(rows) > limit
    rows = rows[:limit]

    mine = await following_ids(ctx.db, ctx.user_id)
    items = [
        {**author_summary(row.User), "isFollowing": row.User.id in mine, "followedAt": row.Follow.created_at}
        for row in rows
    ]
    return success(items, meta={"limit": limit, "hasMore": has_more})


@router.post("")
@with_auth
async def follow_user(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, TargetUserRequest)
    if not data.user_id:
        raise BadRequestError("User ID is required")
    if data.user_id == ctx.user_id:
        raise BadRequestError("You cannot follow yourself")

    if not await ctx.db.get(User, data.user_id):
        return not_found("User")
    if await is_blocked_between(ctx.db, ctx.user_id, data.user_id):
        return error(ErrorCodes.BLOCKED, "Unable to follow this user", 400)

    existing = await ctx.db.execute(
        select(Follow.id).where(Follow.follower_id == ctx.user_id, Follow.following_id == data.user_id)
    )
    if existing.first():
        return conflict("Already following this user")

    try:
        ctx.db.add(Follow(follower_id=ctx.user_id, following_id=data.user_id))
        await ctx.db.flush()
    except IntegrityError:
        await ctx.db.rollback()
        return conflict("Already following this user")

    create_notification(ctx.db, data.user_id, "follow", actor_id=ctx.user_id, target_type="user", target_id=ctx.user_id)
    await ctx.db.commit()
    return success({"following": True, "followersCount": await _followers_count(ctx, data.user_id)})


@router.delete("")
@with_auth
async def unfollow_user(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, TargetUserQuery)
    if not query.user_id:
        raise BadRequestError("User ID is required")

    result = await ctx.db.execute(
        select(Follow).where(Follow.follower_id == ctx.user_id, Follow.following_id == query.user_id)
    )
    follow = result.scalars().first()
    if not follow:
        raise NotFoundError(message="Not following this user")

    await ctx.db.delete(follow)
    await ctx.db.commit()
    return success({"following": False, "followersCount": await _followers_count(ctx, query.user_id)})
