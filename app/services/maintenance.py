"""Counter reconciliation and orphan cleanup.

Counters are maintained incrementally; these jobs recompute them from the
rows they summarize and report how many rows had drifted.
"""
import logging
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.blog import Blog, BlogTag
from app.models.category import Category
from app.models.comment import Comment
from app.models.engagement import Follow, Like
from app.models.tag import Tag
from app.models.user import User
from app.services import hierarchy

logger = logging.getLogger(__name__)


def _count(column, *where):
    return select(func.count(column)).where(*where).scalar_subquery()


async def _fix(db: AsyncSession, model, column_name: str, actual) -> int:
    column = getattr(model, column_name)
    stmt = (
        update(model)
        .where(column != actual)
        .values({column_name: actual})
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def _fix_subtree_counts(db: AsyncSession) -> int:
    rows = (await db.execute(select(Category.id, Category.parent_id, Category.blog_count, Category.subtree_blog_count))).all()
    parents = {r.id: r.parent_id for r in rows}
    children = hierarchy.children_index(parents)
    direct = {r.id: r.blog_count for r in rows}
    fixed = 0
    for r in rows:
        total = hierarchy.subtree_total(children, direct, r.id)
        if total != r.subtree_blog_count:
            await db.execute(
                update(Category)
                .where(Category.id == r.id)
                .values(subtree_blog_count=total)
                .execution_options(synchronize_session=False)
            )
            fixed += 1
    return fixed


async def reconcile_counters(db: AsyncSession) -> dict[str, int]:
    """Recompute every denormalized counter. Returns drifted rows per counter."""
    reply = aliased(Comment)
    drift = {
        "blogs.likes_count": await _fix(db, Blog, "likes_count", _count(Like.id, Like.blog_id == Blog.id)),
        "blogs.comments_count": await _fix(
            db, Blog, "comments_count", _count(Comment.id, Comment.blog_id == Blog.id, Comment.is_deleted.is_(False))
        ),
        "comments.likes_count": await _fix(db, Comment, "likes_count", _count(Like.id, Like.comment_id == Comment.id)),
        "comments.replies_count": await _fix(
            db,
            Comment,
            "replies_count",
            select(func.count(reply.id)).where(reply.parent_id == Comment.id).scalar_subquery(),
        ),
        "users.followers_count": await _fix(
            db, User, "followers_count", _count(Follow.follower_id, Follow.following_id == User.id)
        ),
        "users.following_count": await _fix(
            db, User, "following_count", _count(Follow.following_id, Follow.follower_id == User.id)
        ),
        "users.blogs_count": await _fix(db, User, "blogs_count", _count(Blog.id, Blog.author_id == User.id)),
        "tags.usage_count": await _fix(db, Tag, "usage_count", _count(BlogTag.blog_id, BlogTag.tag_id == Tag.id)),
        "categories.blog_count": await _fix(
            db, Category, "blog_count", _count(Blog.id, Blog.category_id == Category.id)
        ),
    }
    drift["categories.subtree_blog_count"] = await _fix_subtree_counts(db)
    total = sum(drift.values())
    if total:
        logger.warning("Reconciled %d drifted counters: %s", total, {k: v for k, v in drift.items() if v})
    else:
        logger.info("All counters consistent")
    return drift


def _orphaned_likes():
    return or_(
        and_(Like.blog_id.is_not(None), ~select(Blog.id).where(Blog.id == Like.blog_id).exists()),
        and_(Like.comment_id.is_not(None), ~select(Comment.id).where(Comment.id == Like.comment_id).exists()),
    )


async def find_orphaned_likes(db: AsyncSession) -> list[UUID]:
    """Likes whose blog or comment no longer exists."""
    result = await db.execute(select(Like.id).where(_orphaned_likes()))
    return list(result.scalars().all())


async def cleanup_orphaned_likes(db: AsyncSession) -> int:
    result = await db.execute(delete(Like).where(_orphaned_likes()).execution_options(synchronize_session=False))
    removed = result.rowcount or 0
    if removed:
        logger.warning("Removed %d orphaned likes", removed)
    return removed
