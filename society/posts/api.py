import logging

from fastapi import APIRouter, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from society.auth.models import User
from society.core.middleware import ApiContext, clamp_limit, log_info, parse_body, parse_query, with_auth, with_optional_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import conflict, forbidden, not_found, success, validation_error
from society.core.schemas import CursorQuery
from society.notifications.services import create_notification, preview
from society.posts.models import Comment, Like, Post, Share
from society.posts.schemas import CreateCommentRequest, CreatePostRequest, FeedQuery, ShareRequest, UpdatePostRequest
from society.posts.services import PostService, authors_for, serialize_comment, serialize_post

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
@with_auth
async def list_posts(request: Request, ctx: ApiContext, params: dict):
    """Newest-first feed, or one author's posts with ``userId``."""
    query = parse_query(request, FeedQuery)
    limit = clamp_limit(query.limit, 50)
    service = PostService(ctx.db)

    stmt = select(Post).where(await service.feed_filter(ctx.user_id))
    if query.user_id:
        stmt = stmt.where(Post.user_id == query.user_id)
    stmt = apply_cursor(stmt, Post.created_at, query.cursor, limit)

    rows = (await ctx.db.execute(stmt)).scalars().all()
    posts, meta = paginate(rows, limit, key=lambda post: post.created_at)
    return success(await service.serialize_posts(posts, ctx.user_id), meta=meta)


@router.post("")
@with_auth
async def create_post(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, CreatePostRequest)
    if not (data.content and data.content.strip()) and not data.media_urls:
        return validation_error(
            "Post must have content or media",
            [{"field": "content", "message": "Post must have content or media", "type": "value_error"}],
        )

    service = PostService(ctx.db)
    post = await service.create_post(data, ctx.user_id)
    author = await ctx.db.get(User, ctx.user_id)
    log_info(ctx.request_id, "create_post", postId=post.id)
    return success(serialize_post(post, author, False, ctx.user_id), status=201)


@router.get("/{post_id}")
@with_optional_auth
async def get_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_visible_post(params["post_id"], ctx.user_id)
    items = await service.serialize_posts([post], ctx.user_id)
    return success(items[0])


@router.patch("/{post_id}")
@with_auth
async def update_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_post_or_404(params["post_id"])
    if post.user_id != ctx.user_id:
        return forbidden("You can only edit your own posts")

    data = await parse_body(request, UpdatePostRequest)
    changes = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
    content = changes.get("content", post.content)
    if not (content and content.strip()) and not post.media_urls:
        return validation_error(
            "Post must have content or media",
            [{"field": "content", "message": "Post must have content or media", "type": "value_error"}],
        )
    post = await service.update_post(post, changes)
    items = await service.serialize_posts([post], ctx.user_id)
    return success(items[0])


@router.delete("/{post_id}")
@with_auth
async def delete_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_post_or_404(params["post_id"])
    if post.user_id != ctx.user_id:
        return forbidden("You can only delete your own posts")

    await service.delete_post(post)
    return success({"message": "Post deleted successfully"})


@router.get("/{post_id}/comments")
@with_optional_auth
async def list_comments(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, CursorQuery)
    limit = clamp_limit(query.limit, 50)
    post = await PostService(ctx.db).get_visible_post(params["post_id"], ctx.user_id)

    stmt = apply_cursor(select(Comment).where(Comment.post_id == post.id), Comment.created_at, query.cursor, limit)
    rows = (await ctx.db.execute(stmt)).scalars().all()
    comments, meta = paginate(rows, limit, key=lambda comment: comment.created_at)

    authors = await authors_for(ctx.db, comments)
    return success(
        [serialize_comment(c, authors.get(c.user_id), ctx.user_id) for c in comments],
        meta=meta,
    )


@router.post("/{post_id}/comments")
@with_auth
async def create_comment(request: Request, ctx: ApiContext, params: dict):
    """Comment (or reply) on a post; counter and notifications commit together."""
    service = PostService(ctx.db)
    post = await service.get_visible_post(params["post_id"], ctx.user_id)
    data = await parse_body(request, CreateCommentRequest)

    parent = None
    if data.parent_id:
        parent = await ctx.db.get(Comment, data.parent_id)
        if not parent or parent.post_id != post.id:
            return not_found("Parent comment")

    comment = Comment(post_id=post.id, user_id=ctx.user_id, parent_id=data.parent_id, content=data.content)
    ctx.db.add(comment)
    await ctx.db.flush()
    await service.bump(post.id, "comments_count", 1)

    create_notification(
        ctx.db, post.user_id, "comment",
        actor_id=ctx.user_id, target_type="post", target_id=post.id, content=preview(data.content),
    )
    if parent and parent.user_id != post.user_id:
        create_notification(
            ctx.db, parent.user_id, "comment",
            actor_id=ctx.user_id, target_type="comment", target_id=parent.id, content=preview(data.content),
        )
    await service.notify_mentions(
        data.content, ctx.user_id, "comment", comment.id,
        skip={post.user_id, parent.user_id if parent else None},
    )
    await ctx.db.commit()

    author = await ctx.db.get(User, ctx.user_id)
    return success(serialize_comment(comment, author, ctx.user_id), status=201)


@router.post("/{post_id}/like")
@with_auth
async def like_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_visible_post(params["post_id"], ctx.user_id)

    existing = await ctx.db.execute(
        select(Like.id).where(Like.user_id == ctx.user_id, Like.target_type == "post", Like.target_id == post.id)
    )
    if existing.first():
        return conflict("You have already liked this post")

    try:
        ctx.db.add(Like(user_id=ctx.user_id, target_type="post", target_id=post.id))
        await ctx.db.flush()
    except IntegrityError:
        await ctx.db.rollback()
        return conflict("You have already liked this post")

    likes_count = await service.bump(post.id, "likes_count", 1)
    create_notification(ctx.db, post.user_id, "like", actor_id=ctx.user_id, target_type="post", target_id=post.id)
    await ctx.db.commit()
    return success({"liked": True, "likesCount": likes_count})


@router.delete("/{post_id}/like")
@with_auth
async def unlike_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_post_or_404(params["post_id"])

    result = await ctx.db.execute(
        select(Like).where(Like.user_id == ctx.user_id, Like.target_type == "post", Like.target_id == post.id)
    )
    like = result.scalars().first()
    if not like:
        return not_found("Like")

    await ctx.db.delete(like)
    likes_count = await service.bump(post.id, "likes_count", -1)
    await ctx.db.commit()
    return success({"liked": False, "likesCount": likes_count})


@router.post("/{post_id}/share")
@with_auth
async def share_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_visible_post(params["post_id"], ctx.user_id)
    data = await parse_body(request, ShareRequest, allow_empty=True)

    existing = await ctx.db.execute(select(Share.id).where(Share.user_id == ctx.user_id, Share.post_id == post.id))
    if existing.first():
        return conflict("You have already shared this post")

    try:
        ctx.db.add(Share(user_id=ctx.user_id, post_id=post.id, comment=data.comment))
        await ctx.db.flush()
    except IntegrityError:
        await ctx.db.rollback()
        return conflict("You have already shared this post")

    shares_count = await service.bump(post.id, "shares_count", 1)
    create_notification(
        ctx.db, post.user_id, "share",
        actor_id=ctx.user_id, target_type="post", target_id=post.id, content=preview(data.comment),
    )
    await ctx.db.commit()
    return success({"shared": True, "sharesCount": shares_count})


@router.delete("/{post_id}/share")
@with_auth
async def unshare_post(request: Request, ctx: ApiContext, params: dict):
    service = PostService(ctx.db)
    post = await service.get_post_or_404(params["post_id"])

    result = await ctx.db.execute(select(Share).where(Share.user_id == ctx.user_id, Share.post_id == post.id))
    share = result.scalars().first()
    if not share:
        return not_found("Share")

    await ctx.db.delete(share)
    shares_count = await service.bump(post.id, "shares_count", -1)
    await ctx.db.commit()
    return success({"shared": False, "sharesCount": shares_count})
