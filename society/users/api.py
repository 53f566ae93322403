import logging

from fastapi import APIRouter, Request

from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth, with_optional_auth
from society.core.response import forbidden, success
from society.users import services
from society.users.schemas import MentionQuery, SuggestionQuery, UpdateProfileRequest, UserSearchQuery

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

# An explicit null leaves these unchanged
NON_NULLABLE_FIELDS = {"display_name", "is_private"}


@router.get("")
@with_auth
async def search_users(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, UserSearchQuery)
    limit = clamp_limit(query.limit, 50)
    offset = (query.page - 1) * limit

    users, total = await services.search_users(ctx.db, query.q.strip(), limit, offset)
    return success(
        [services.public_profile(user) for user in users],
        meta={"page": query.page, "limit": limit, "total": total, "hasMore": offset + len(users) < total},
    )


@router.get("/mentions")
@with_auth
async def mentions(request: Request, ctx: ApiContext, params: dict):
    """Autocomplete for @mentions: username or display name prefix."""
    query = parse_query(request, MentionQuery)
    term = query.q.strip().lstrip("@")
    if not term:
        return success([])
    users = await services.mention_candidates(ctx.db, term, ctx.user_id)
    return success([services.author_summary(user) for user in users])


@router.get("/suggestions")
@with_auth
async def suggestions(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, SuggestionQuery)
    items = await services.suggestions(ctx.db, ctx.user_id, clamp_limit(query.limit, 20))
    return success(items)


@router.get("/{user_id}")
@with_optional_auth
async def get_profile(request: Request, ctx: ApiContext, params: dict):
    user = await services.get_user_or_404(ctx.db, params["user_id"])
    is_own = ctx.user_id == user.id

    profile = services.account_payload(user) if is_own else services.public_profile(user)
    profile.update(await services.profile_counts(ctx.db, user.id))
    profile.update({
        "friendshipStatus": await services.friendship_status(ctx.db, ctx.user_id, user.id),
        "isFollowing": await services.is_following(ctx.db, ctx.user_id, user.id),
        "isOwnProfile": is_own,
    })
    return success(profile)


@router.patch("/{user_id}")
@with_auth
async def update_profile(request: Request, ctx: ApiContext, params: dict):
    if params["user_id"] != ctx.user_id:
        return forbidden("You can only update your own profile")

    data = await parse_body(request, UpdateProfileRequest)
    user = await services.get_user_or_404(ctx.db, ctx.user_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        setattr(user, field, value)

    await ctx.db.commit()
    await ctx.sessions.clear_user_cache(user.id)
    logger.info(f"Profile updated for user {user.id}")
    return success(services.account_payload(user))
