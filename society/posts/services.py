import logging
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, case, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.models import User
from society.core.errors import ForbiddenError, NotFoundError
from society.friends.services import blocked_ids, friend_ids
from society.notifications.services import create_notification, preview
from society.posts.models import Comment, Hashtag, Like, Post, PostHashtag, SavedPost, Share
from society.posts.schemas import CreatePostRequest, Visibility
from society.users.services import author_summary, load_users
from society.utils.text import extract_hashtags, extract_mentions

logger = logging.getLogger(__name__)

COUNTERS = {"likes_count", "comments_count", "shares_count"}


class PostService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_post_or_404(self, post_id: str) -> Post:
        post = await self.db.get(Post, post_id)
        if not post:
            raise NotFoundError("Post")
        return post

    async def can_view(self, post: Post, viewer_id: Optional[str]) -> bool:
        if post.visibility == Visibility.PUBLIC.value or post.user_id == viewer_id:
            return True
        if post.visibility == Visibility.FRIENDS.value and viewer_id:
            return viewer_id in await friend_ids(self.db, post.user_id)
        return False

    async def get_visible_post(self, post_id: str, viewer_id: Optional[str]) -> Post:
        post = await self.get_post_or_404(post_id)
        if not await self.can_view(post, viewer_id):
            raise ForbiddenError("You don't have permission to view this post")
        return post

    async def feed_filter(self, viewer_id: str):
        """Posts the viewer may see in a feed: public, their own, friends-only from friends."""
        friends = await friend_ids(self.db, viewer_id)
        hidden = await blocked_ids(self.db, viewer_id)
        clause = or_(
            Post.visibility == Visibility.PUBLIC.value,
            Post.user_id == viewer_id,
            and_(Post.visibility == Visibility.FRIENDS.value, Post.user_id.in_(friends)),
        )
        if hidden:
            clause = and_(clause, Post.user_id.not_in(hidden))
        return clause

    async def create_post(self, data: CreatePostRequest, author_id: str) -> Post:
        try:
            post = Post(
                user_id=author_id,
                content=data.content,
                media_urls=list(data.media_urls),
                visibility=data.visibility.value,
            )
            self.db.add(post)
            await self.db.flush()

            await self.attach_hashtags(post)
            await self.notify_mentions(post.content, author_id, "post", post.id)

            await self.db.commit()
            logger.info(f"Post created: id={post.id} by user {author_id}")
            return post
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating post for user {author_id}: {e}")
            raise

    async def update_post(self, post: Post, changes: dict) -> Post:
        content_changed = "content" in changes and changes["content"] != post.content
        if content_changed:
            await self.detach_hashtags(post)
        for field, value in changes.items():
            setattr(post, field, value.value if isinstance(value, Visibility) else value)
        if content_changed:
            await self.db.flush()
            await self.attach_hashtags(post)
        await self.db.commit()
        return post

    async def delete_post(self, post: Post) -> None:
        await self.detach_hashtags(post)
        comment_ids = select(Comment.id).where(Comment.post_id == post.id)
        await self.db.execute(
            delete(Like).where(
                or_(
                    and_(Like.target_type == "post", Like.target_id == post.id),
                    and_(Like.target_type == "comment", Like.target_id.in_(comment_ids)),
                )
            )
        )
        await self.db.execute(delete(Comment).where(Comment.post_id == post.id))
        await self.db.execute(delete(Share).where(Share.post_id == post.id))
        await self.db.execute(delete(SavedPost).where(SavedPost.post_id == post.id))
        await self.db.delete(post)
        await self.db.commit()
        logger.info(f"Post deleted: id={post.id}")

    async def attach_hashtags(self, post: Post) -> None:
        for name in extract_hashtags(post.content):
            result = await self.db.execute(select(Hashtag).where(Hashtag.name == name))
            hashtag = result.scalars().first()
            if hashtag is None:
                hashtag = Hashtag(name=name, post_count=0)
                self.db.add(hashtag)
                await self.db.flush()
            hashtag.post_count = hashtag.post_count + 1
            self.db.add(PostHashtag(post_id=post.id, hashtag_id=hashtag.id))
        await self.db.flush()

    async def detach_hashtags(self, post: Post) -> None:
        result = await self.db.execute(
            select(Hashtag).join(PostHashtag, PostHashtag.hashtag_id == Hashtag.id).where(PostHashtag.post_id == post.id)
        )
        for hashtag in result.scalars().all():
            hashtag.post_count = max(hashtag.post_count - 1, 0)
        await self.db.execute(delete(PostHashtag).where(PostHashtag.post_id == post.id))

    async def notify_mentions(self, text: Optional[str], actor_id: str, target_type: str, target_id: str,
                              skip: Iterable[str] = ()) -> None:
        usernames = extract_mentions(text)
        if not usernames:
            return
        result = await self.db.execute(select(User.id).where(User.username.in_(usernames)))
        for user_id in result.scalars().all():
            if user_id in skip:
                continue
            create_notification(
                self.db, user_id, "mention",
                actor_id=actor_id, target_type=target_type, target_id=target_id,
                content=preview(text),
            )

    async def bump(self, post_id: str, counter: str, delta: int) -> int:
        """Adjust a denormalized counter in SQL, never below zero, and return the new value."""
        if counter not in COUNTERS:
            raise ValueError(f"Unknown post counter: {counter}")
        column = getattr(Post, counter)
        # Engagement is not an edit: keep updated_at out of the onupdate hook
        await self.db.execute(
            update(Post)
            .where(Post.id == post_id)
            .values({
                counter: case((column + delta < 0, 0), else_=column + delta),
                "updated_at": Post.updated_at,
            })
            .execution_options(synchronize_session=False)
        )
        return await self.db.scalar(select(column).where(Post.id == post_id))

    async def liked_post_ids(self, user_id: Optional[str], post_ids: List[str]) -> Set[str]:
        if not user_id or not post_ids:
            return set()
        result = await self.db.execute(
            select(Like.target_id).where(
                Like.user_id == user_id, Like.target_type == "post", Like.target_id.in_(post_ids)
            )
        )
        return set(result.scalars().all())

    async def serialize_posts(self, posts: List[Post], viewer_id: Optional[str]) -> List[dict]:
        authors = await load_users(self.db, {post.user_id for post in posts})
        liked = await self.liked_post_ids(viewer_id, [post.id for post in posts])
        return [
            serialize_post(post, authors.get(post.user_id), post.id in liked, viewer_id)
            for post in posts
        ]


def serialize_post(post: Post, author: Optional[User], is_liked: bool, viewer_id: Optional[str]) -> dict:
    return {
        "id": post.id,
        "content": post.content,
        "mediaUrls": post.media_urls or [],
        "visibility": post.visibility,
        "likesCount": post.likes_count,
        "commentsCount": post.comments_count,
        "sharesCount": post.shares_count,
        "createdAt": post.created_at,
        "updatedAt": post.updated_at,
        "author": author_summary(author) if author else None,
        "isLiked": is_liked,
        "isOwnPost": viewer_id is not None and post.user_id == viewer_id,
    }


def serialize_comment(comment: Comment, author: Optional[User], viewer_id: Optional[str]) -> dict:
    return {
        "id": comment.id,
        "postId": comment.post_id,
        "parentId": comment.parent_id,
        "content": comment.content,
        "likesCount": comment.likes_count,
        "createdAt": comment.created_at,
        "author": author_summary(author) if author else None,
        "isOwnComment": viewer_id is not None and comment.user_id == viewer_id,
    }


async def authors_for(db: AsyncSession, rows) -> Dict[str, User]:
    return await load_users(db, {row.user_id for row in rows})
