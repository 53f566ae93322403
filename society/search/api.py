from datetime import timedelta

from fastapi import APIRouter, Request
from sqlalchemy import func, select

from society.auth.models import User
from society.core.middleware import ApiContext, clamp_limit, parse_query, with_optional_auth
from society.core.response import success
from society.posts.models import Hashtag, Post
from society.posts.schemas import Visibility
from society.posts.services import PostService
from society.search.schemas import Period, SearchQuery, SearchType, TrendingQuery, TrendingType
from society.users.services import author_summary, search_clause
from society.utils.dates import utcnow

router = APIRouter(tags=["search"])

# Results per section when searching everything at once
PREVIEW_SIZE = 5
PERIODS = {
    Period.DAY: timedelta(days=1),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
}


def engagement_score(post: Post) -> int:
    return (post.likes_count or 0) * 3 + (post.comments_count or 0) * 5 + (post.shares_count or 0) * 7


def serialize_hashtag(hashtag: Hashtag) -> dict:
    return {"id": hashtag.id, "name": hashtag.name, "postCount": hashtag.post_count}


@router.get("/search")
@with_optional_auth
async def search(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, SearchQuery)
    term = query.q.strip()
    if len(term) < 2:
        return success({"users": [], "posts": [], "hashtags": []})

    limit = clamp_limit(query.limit, 50)

    def window(section: SearchType):
        if query.type == section:
            return limit, query.offset
        return PREVIEW_SIZE, 0

    pattern = f"%{term.lower()}%"
    results = {}

    if query.type in (SearchType.ALL, SearchType.USERS):
        size, offset = window(SearchType.USERS)
        users = (await ctx.db.execute(
            select(User).where(search_clause(term)).order_by(User.username).offset(offset).limit(size)
        )).scalars().all()
        results["users"] = [{**author_summary(user), "bio": user.bio} for user in users]

    if query.type in (SearchType.ALL, SearchType.POSTS):
        size, offset = window(SearchType.POSTS)
        posts = (await ctx.db.execute(
            select(Post)
            .where(Post.visibility == Visibility.PUBLIC.value, func.lower(Post.content).like(pattern))
            .order_by(Post.created_at.desc())
            .offset(offset)
            .limit(size)
        )).scalars().all()
        results["posts"] = await PostService(ctx.db).serialize_posts(posts, ctx.user_id)

    if query.type in (SearchType.ALL, SearchType.HASHTAGS):
        size, offset = window(SearchType.HASHTAGS)
        tag_pattern = f"%{term.lstrip('#').lower()}%"
        hashtags = (await ctx.db.execute(
            select(Hashtag)
            .where(Hashtag.name.like(tag_pattern))
            .order_by(Hashtag.post_count.desc())
            .offset(offset)
            .limit(size)
        )).scalars().all()
        results["hashtags"] = [serialize_hashtag(h) for h in hashtags]

    return success(results)


@router.get("/trending")
@with_optional_auth
async def trending(request: Request, ctx: ApiContext, params: dict):
    """Public posts of the period ranked by likes*3 + comments*5 + shares*7, and the busiest hashtags."""
    query = parse_query(request, TrendingQuery)
    limit = clamp_limit(query.limit, 50)
    results = {}

    if query.type in (TrendingType.ALL, TrendingType.POSTS):
        threshold = utcnow() - PERIODS[query.period]
        score = Post.likes_count * 3 + Post.comments_count * 5 + Post.shares_count * 7
        posts = (await ctx.db.execute(
            select(Post)
            .where(Post.visibility == Visibility.PUBLIC.value, Post.created_at >= threshold)
            .order_by(score.desc(), Post.created_at.desc())
            .limit(limit)
        )).scalars().all()
        items = await PostService(ctx.db).serialize_posts(posts, ctx.user_id)
        for item, post in zip(items, posts):
            item["engagementScore"] = engagement_score(post)
        results["posts"] = items

    if query.type in (TrendingType.ALL, TrendingType.HASHTAGS):
        hashtags = (await ctx.db.execute(
            select(Hashtag)
            .where(Hashtag.post_count > 0)
            .order_by(Hashtag.post_count.desc())
            .limit(limit if query.type == TrendingType.HASHTAGS else 10)
        )).scalars().all()
        results["hashtags"] = [serialize_hashtag(h) for h in hashtags]

    return success(results)
