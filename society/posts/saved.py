from fastapi import APIRouter, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import ErrorCodes, conflict, error, not_found, success
from society.core.schemas import CursorQuery
from society.posts.models import Post, SavedPost
from society.posts.schemas import PostIdQuery, SavePostRequest
from society.posts.services import PostService

router = APIRouter(prefix="/saved", tags=["saved"])


@router.get("")
@with_auth
async def list_saved(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, CursorQuery)
    limit = clamp_limit(query.limit, 50)

    stmt = select(SavedPost, Post).join(Post, Post.id == SavedPost.post_id).where(SavedPost.user_id == ctx.user_id)
    stmt = apply_cursor(stmt, SavedPost.saved_at, query.cursor, limit)
    rows = (await ctx.db.execute(stmt)).all()
    rows, meta = paginate(rows, limit, key=lambda row: row.SavedPost.saved_at)

    service = PostService(ctx.db)
    posts = await service.serialize_posts([row.Post for row in rows], ctx.user_id)
    items = [
        {**post, "savedAt": row.SavedPost.saved_at}
        for post, row in zip(posts, rows)
    ]
    return success(items, meta=meta)


@router.post("")
@with_auth
async def save_post(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, SavePostRequest)
    if not data.post_id:
        return error(ErrorCodes.INVALID_REQUEST, "Post ID is required", 400)

    post = await PostService(ctx.db).get_visible_post(data.post_id, ctx.user_id)

    existing = await ctx.db.execute(
        select(SavedPost.id).where(SavedPost.user_id == ctx.user_id, SavedPost.post_id == post.id)
    )
    if existing.first():
        return conflict("Post already saved")

    try:
        ctx.db.add(SavedPost(user_id=ctx.user_id, post_id=post.id))
        await ctx.db.commit()
    except IntegrityError:
        await ctx.db.rollback()
        return conflict("Post already saved")
    return success({"saved": True})


@router.delete("")
@with_auth
async def unsave_post(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, PostIdQuery)
    if not query.post_id:
        return error(ErrorCodes.INVALID_REQUEST, "Post ID is required", 400)

    result = await ctx.db.execute(
        select(SavedPost).where(SavedPost.user_id == ctx.user_id, SavedPost.post_id == query.post_id)
    )
    saved = result.scalars().first()
    if not saved:
        return not_found("Saved post")

    await ctx.db.delete(saved)
    await ctx.db.commit()
    return success({"saved": False})
