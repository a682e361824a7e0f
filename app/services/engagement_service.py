"""Likes and follows, each moving its denormalized counters in the same transaction."""
import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.blog import Blog
from app.models.comment import Comment
from app.models.engagement import BlogTarget, CommentTarget, Follow, Like, LikeTarget
from app.models.enums import NotificationType
from app.models.user import User
from app.schemas.pagination import Page, PageParams
from app.services import counters
from app.services.blog_service import BLOG_SORTS, published_blogs
from app.services.common import flush
from app.services.notification_service import create_notification
from app.services.pagination import paginate

logger = logging.getLogger(__name__)

USER_SORTS = {"username": User.username, "created_at": User.created_at, "followers_count": User.followers_count}


def _like_filter(user_id: UUID, target: LikeTarget):
    match target:
        case BlogTarget(id=blog_id):
            return (Like.user_id == user_id, Like.blog_id == blog_id)
        case CommentTarget(id=comment_id):
            return (Like.user_id == user_id, Like.comment_id == comment_id)
    raise ValidationError("Like target must be a blog or a comment")


async def _target_owner(db: AsyncSession, target: LikeTarget) -> tuple[UUID, UUID]:
    """``(owner_id, blog_id)`` of a likeable target, checking it can be liked."""
    match target:
        case BlogTarget(id=blog_id):
            blog = await db.get(Blog, blog_id)
            if blog is None:
                raise NotFoundError("Blog not found")
            if not blog.current_status.can_receive_interactions:
                raise ValidationError("Only published blogs can be liked")
            return blog.author_id, blog.id
        case CommentTarget(id=comment_id):
            comment = await db.get(Comment, comment_id)
            if comment is None:
                raise NotFoundError("Comment not found")
            if not comment.is_visible:
                raise ValidationError("Deleted or unapproved comments cannot be liked")
            return comment.author_id, comment.blog_id
    raise ValidationError("Like target must be a blog or a comment")


async def _bump_like_counter(db: AsyncSession, target: LikeTarget, up: bool) -> None:
    match target:
        case BlogTarget(id=blog_id):
            await (counters.increment_blog_likes if up else counters.decrement_blog_likes)(db, blog_id)
        case CommentTarget(id=comment_id):
            await (counters.increment_comment_likes if up else counters.decrement_comment_likes)(db, comment_id)


async def has_liked(db: AsyncSession, user_id: UUID, target: LikeTarget) -> bool:
    result = await db.execute(select(Like.id).where(*_like_filter(user_id, target)))
    return result.first() is not None


async def like(db: AsyncSession, user: User, target: LikeTarget) -> Like:
    """Record a like and bump the target's counter. A repeat like is a conflict."""
    owner_id, blog_id = await _target_owner(db, target)
    if await has_liked(db, user.id, target):
        raise ConflictError(f"Already liked this {target.kind}")
    row = Like.for_target(user.id, target)
    db.add(row)
    await flush(db, f"Already liked this {target.kind}")
    await _bump_like_counter(db, target, up=True)
    await create_notification(
        db,
        recipient_id=owner_id,
        actor_id=user.id,
        notification_type=(
            NotificationType.BLOG_LIKED if isinstance(target, BlogTarget) else NotificationType.COMMENT_LIKED
        ),
        related_blog_id=blog_id,
        related_comment_id=target.id if isinstance(target, CommentTarget) else None,
    )
    return row


async def unlike(db: AsyncSession, user: User, target: LikeTarget) -> None:
    """Remove a like. Only the statement that actually deleted the row decrements."""
    result = await db.execute(
        delete(Like).where(*_like_filter(user.id, target)).execution_options(synchronize_session="fetch")
    )
    if not result.rowcount:
        raise NotFoundError(f"You have not liked this {target.kind}")
    await _bump_like_counter(db, target, up=False)


async def get_likers(db: AsyncSession, target: LikeTarget, params: PageParams) -> Page:
    match target:
        case BlogTarget(id=blog_id):
            likers = select(Like.user_id).where(Like.blog_id == blog_id)
        case CommentTarget(id=comment_id):
            likers = select(Like.user_id).where(Like.comment_id == comment_id)
        case _:
            raise ValidationError("Like target must be a blog or a comment")
    q = select(User).where(User.id.in_(likers))
    return await paginate(db, q, params, USER_SORTS, default_order=User.username.asc())


async def get_liked_blogs(db: AsyncSession, user_id: UUID, params: PageParams) -> Page:
    q = published_blogs().where(Blog.id.in_(select(Like.blog_id).where(Like.user_id == user_id)))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


# Follows

async def _active_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


async def is_following(db: AsyncSession, follower_id: UUID, following_id: UUID) -> bool:
    result = await db.execute(
        select(Follow.follower_id).where(Follow.follower_id == follower_id, Follow.following_id == following_id)
    )
    return result.first() is not None


async def get_following_ids(db: AsyncSession, follower_id: UUID, user_ids: list[UUID]) -> set[UUID]:
    """Return the subset of ``user_ids`` the follower follows."""
    if not user_ids:
        return set()
    result = await db.execute(
        select(Follow.following_id).where(Follow.follower_id == follower_id, Follow.following_id.in_(user_ids))
    )
    return set(result.scalars().all())


async def follow(db: AsyncSession, follower: User, following_id: UUID) -> Follow:
    if follower.id == following_id:
        raise ValidationError("Users cannot follow themselves")
    target = await _active_user(db, following_id)
    if await is_following(db, follower.id, target.id):
        raise ConflictError(f"Already following {target.username}")
    row = Follow(follower_id=follower.id, following_id=target.id)
    db.add(row)
    await flush(db, f"Already following {target.username}")
    await counters.increment_following(db, follower.id)
    await counters.increment_followers(db, target.id)
    notification = await create_notification(
        db,
        recipient_id=target.id,
        actor_id=follower.id,
        notification_type=NotificationType.USER_FOLLOWED,
        related_user_id=follower.id,
        action_url=f"/users/{follower.username}",
    )
    row.is_notification_sent = notification is not None
    await flush(db)
    logger.debug("%s now follows %s", follower.id, target.id)
    return row


async def unfollow(db: AsyncSession, follower: User, following_id: UUID) -> None:
    result = await db.execute(
        delete(Follow)
        .where(Follow.follower_id == follower.id, Follow.following_id == following_id)
        .execution_options(synchronize_session="fetch")
    )
    if not result.rowcount:
        raise NotFoundError("You are not following this user")
    await counters.decrement_following(db, follower.id)
    await counters.decrement_followers(db, following_id)


async def get_followers(db: AsyncSession, user_id: UUID, params: PageParams) -> Page:
    await _active_user(db, user_id)
    followers = select(Follow.follower_id).where(Follow.following_id == user_id)
    q = select(User).where(User.id.in_(followers), User.is_active.is_(True))
    return await paginate(db, q, params, USER_SORTS, default_order=User.username.asc())


async def get_following(db: AsyncSession, user_id: UUID, params: PageParams) -> Page:
    await _active_user(db, user_id)
    following = select(Follow.following_id).where(Follow.follower_id == user_id)
    q = select(User).where(User.id.in_(following), User.is_active.is_(True))
    return await paginate(db, q, params, USER_SORTS, default_order=User.username.asc())
