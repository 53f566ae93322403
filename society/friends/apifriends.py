import logging

from fastapi import APIRouter, Request
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from society.auth.models import User
from society.core.middleware import ApiContext, clamp_limit, parse_query, with_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import ErrorCodes, error, not_found, success
from society.friends.models import Friendship
from society.friends.schemas import FriendsQuery
from society.friends.services import delete_friendship, friendship_between, is_blocked_between
from society.notifications.services import create_notification
from society.users.services import author_summary, load_users

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])

LIST_FILTERS = {"accepted", "pending", "sent"}


# ─────────────────────────────────────────────
# Friends and pending requests
# ─────────────────────────────────────────────
@router.get("")
@with_auth
async def list_friends(request: Request, ctx: ApiContext, params: dict):
    """``accepted`` friends, ``pending`` requests received, or requests ``sent``."""
    query = parse_query(request, FriendsQuery)
    if query.status not in LIST_FILTERS:
        return error(ErrorCodes.INVALID_STATUS, "Status must be one of accepted, pending, sent", 400)
    limit = clamp_limit(query.limit, 100)

    stmt = select(Friendship)
    if query.status == "accepted":
        stmt = stmt.where(
            Friendship.status == "accepted",
            or_(Friendship.requester_id == ctx.user_id, Friendship.addressee_id == ctx.user_id),
        )
    elif query.status == "pending":
        stmt = stmt.where(Friendship.status == "pending", Friendship.addressee_id == ctx.user_id)
    else:
        stmt = stmt.where(Friendship.status == "pending", Friendship.requester_id == ctx.user_id)

    stmt = apply_cursor(stmt, Friendship.created_at, query.cursor, limit)
    rows = (await ctx.db.execute(stmt)).scalars().all()
    friendships, meta = paginate(rows, limit, key=lambda f: f.created_at)

    users = await load_users(ctx.db, {f.other(ctx.user_id) for f in friendships})
    items = []
    for friendship in friendships:
        other = users.get(friendship.other(ctx.user_id))
        if other is None:
            continue
        items.append({
            "friendshipId": friendship.id,
            "user": author_summary(other),
            "status": friendship.status,
            "createdAt": friendship.created_at,
        })
    return success(items, meta=meta)


# ─────────────────────────────────────────────
# Send / cancel a friend request
# ─────────────────────────────────────────────
@router.post("/request/{user_id}")
@with_auth
async def send_request(request: Request, ctx: ApiContext, params: dict):
    target_id = params["user_id"]
    if target_id == ctx.user_id:
        return error(ErrorCodes.INVALID_REQUEST, "You cannot send a friend request to yourself", 400)

    if not await ctx.db.get(User, target_id):
        return not_found("User")

    if await is_blocked_between(ctx.db, ctx.user_id, target_id):
        return error(ErrorCodes.BLOCKED, "Unable to send friend request", 400)

    existing = await friendship_between(ctx.db, ctx.user_id, target_id)
    if existing:
        if existing.status == "accepted":
            return error(ErrorCodes.ALREADY_FRIENDS, "You are already friends", 400)
        if existing.status == "blocked":
            return error(ErrorCodes.BLOCKED, "Unable to send friend request", 400)
        if existing.requester_id == ctx.user_id:
            return error(ErrorCodes.REQUEST_PENDING, "Friend request already sent", 400)

        # They already asked us: treat this as accepting their request
        existing.status = "accepted"
        create_notification(
            ctx.db, target_id, "friend_accepted",
            actor_id=ctx.user_id, target_type="user", target_id=ctx.user_id,
        )
        await ctx.db.commit()
        return success({"status": "accepted", "message": "Friend request accepted"})

    try:
        ctx.db.add(Friendship(requester_id=ctx.user_id, addressee_id=target_id, status="pending"))
        create_notification(
            ctx.db, target_id, "friend_request",
            actor_id=ctx.user_id, target_type="user", target_id=ctx.user_id,
        )
        await ctx.db.commit()
    except IntegrityError:
        await ctx.db.rollback()
        return error(ErrorCodes.REQUEST_PENDING, "Friend request already sent", 400)

    logger.info(f"Friend request {ctx.user_id} -> {target_id}")
    return success({"status": "pending", "message": "Friend request sent"}, status=201)


@router.delete("/request/{user_id}")
@with_auth
async def remove_friend(request: Request, ctx: ApiContext, params: dict):
    """Cancel a sent request or unfriend."""
    target_id = params["user_id"]
    existing = await friendship_between(ctx.db, ctx.user_id, target_id)
    if not existing or existing.status == "blocked":
        return not_found("Friendship")

    await delete_friendship(ctx.db, ctx.user_id, target_id)
    await ctx.db.commit()
    return success({"message": "Friendship removed"})


# ─────────────────────────────────────────────
# Accept / reject a received request
# ─────────────────────────────────────────────
async def _received_request(ctx: ApiContext, requester_id: str):
    result = await ctx.db.execute(
        select(Friendship).where(
            Friendship.requester_id == requester_id,
            Friendship.addressee_id == ctx.user_id,
            Friendship.status == "pending",
        )
    )
    return result.scalars().first()


@router.post("/accept/{user_id}")
@with_auth
async def accept_request(request: Request, ctx: ApiContext, params: dict):
    friendship = await _received_request(ctx, params["user_id"])
    if not friendship:
        return not_found("Friend request")

    friendship.status = "accepted"
    create_notification(
        ctx.db, friendship.requester_id, "friend_accepted",
        actor_id=ctx.user_id, target_type="user", target_id=ctx.user_id,
    )
    await ctx.db.commit()
    return success({"status": "accepted", "message": "Friend request accepted"})


@router.post("/reject/{user_id}")
@with_auth
async def reject_request(request: Request, ctx: ApiContext, params: dict):
    friendship = await _received_request(ctx, params["user_id"])
    if not friendship:
        return not_found("Friend request")

    await ctx.db.delete(friendship)
    await ctx.db.commit()
    return success({"message": "Friend request rejected"})
