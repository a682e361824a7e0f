"""Atomic denormalized-counter updates.

Every counter changes through a single ``UPDATE ... SET c = c + n`` statement
so concurrent writers serialize on the row instead of overwriting each other
with stale in-memory values. Decrements carry ``c > 0`` in the predicate,
which floors them at zero without a read.
"""
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.blog import Blog
from app.models.category import Category
from app.models.comment import Comment
from app.models.tag import Tag
from app.models.user import User


async def _bump(db: AsyncSession, model, column_name: str, ids: Iterable[UUID], delta: int) -> int:
    ids = list(ids)
    if not ids or delta == 0:
        return 0
    column = getattr(model, column_name)
    stmt = update(model).where(model.id.in_(ids))
    if delta > 0:
        stmt = stmt.values({column_name: column + delta})
    else:
        stmt = stmt.where(column > 0).values({column_name: column - 1})
    result = await db.execute(stmt.execution_options(synchronize_session="fetch"))
    return result.rowcount or 0


async def increment(db: AsyncSession, model, column_name: str, entity_id: UUID, by: int = 1) -> int:
    return await _bump(db, model, column_name, [entity_id], by)


async def decrement(db: AsyncSession, model, column_name: str, entity_id: UUID) -> int:
    """Decrement by one, floored at zero. Returns the number of rows changed."""
    return await _bump(db, model, column_name, [entity_id], -1)


# Blog counters

async def increment_blog_views(db: AsyncSession, blog_id: UUID) -> int:
    return await increment(db, Blog, "views_count", blog_id)


async def increment_blog_likes(db: AsyncSession, blog_id: UUID) -> int:
    return await increment(db, Blog, "likes_count", blog_id)


async def decrement_blog_likes(db: AsyncSession, blog_id: UUID) -> int:
    return await decrement(db, Blog, "likes_count", blog_id)


async def increment_blog_comments(db: AsyncSession, blog_id: UUID) -> int:
    return await increment(db, Blog, "comments_count", blog_id)


async def decrement_blog_comments(db: AsyncSession, blog_id: UUID) -> int:
    return await decrement(db, Blog, "comments_count", blog_id)


async def subtract_blog_comments(db: AsyncSession, blog_id: UUID, amount: int) -> int:
    """Remove ``amount`` comments at once, clamped at zero."""
    if amount <= 0:
        return 0
    stmt = (
        update(Blog)
        .where(Blog.id == blog_id)
        .values(
            comments_count=case((Blog.comments_count > amount, Blog.comments_count - amount), else_=0)
        )
    )
    result = await db.execute(stmt.execution_options(synchronize_session="fetch"))
    return result.rowcount or 0


# Comment counters

async def increment_comment_likes(db: AsyncSession, comment_id: UUID) -> int:
    return await increment(db, Comment, "likes_count", comment_id)


async def decrement_comment_likes(db: AsyncSession, comment_id: UUID) -> int:
    return await decrement(db, Comment, "likes_count", comment_id)


async def increment_replies(db: AsyncSession, comment_id: UUID) -> int:
    return await increment(db, Comment, "replies_count", comment_id)


async def decrement_replies(db: AsyncSession, comment_id: UUID) -> int:
    return await decrement(db, Comment, "replies_count", comment_id)


# User counters

async def increment_followers(db: AsyncSession, user_id: UUID) -> int:
    return await increment(db, User, "followers_count", user_id)


async def decrement_followers(db: AsyncSession, user_id: UUID) -> int:
    return await decrement(db, User, "followers_count", user_id)


async def increment_following(db: AsyncSession, user_id: UUID) -> int:
    return await increment(db, User, "following_count", user_id)


async def decrement_following(db: AsyncSession, user_id: UUID) -> int:
    return await decrement(db, User, "following_count", user_id)


async def increment_user_blogs(db: AsyncSession, user_id: UUID) -> int:
    return await increment(db, User, "blogs_count", user_id)


async def decrement_user_blogs(db: AsyncSession, user_id: UUID) -> int:
    return await decrement(db, User, "blogs_count", user_id)


# Tag counters

async def increment_tag_usage(db: AsyncSession, tag_ids: Iterable[UUID]) -> int:
    return await _bump(db, Tag, "usage_count", tag_ids, 1)


async def decrement_tag_usage(db: AsyncSession, tag_ids: Iterable[UUID]) -> int:
    return await _bump(db, Tag, "usage_count", tag_ids, -1)


# Category counters

async def increment_category_blogs(db: AsyncSession, category_id: UUID, lineage: list[UUID]) -> None:
    """+1 on the node's own count and on the subtree count of the node and every ancestor.

    ``lineage`` is the ancestor chain of ``category_id`` (any order).
    """
    await increment(db, Category, "blog_count", category_id)
    await _bump(db, Category, "subtree_blog_count", [category_id, *lineage], 1)


async def decrement_category_blogs(db: AsyncSession, category_id: UUID, lineage: list[UUID]) -> None:
    await decrement(db, Category, "blog_count", category_id)
    await _bump(db, Category, "subtree_blog_count", [category_id, *lineage], -1)


async def carry_category_subtree(
    db: AsyncSession,
    moved_id: UUID,
    old_lineage: Iterable[UUID],
    new_lineage: Iterable[UUID],
) -> None:
    """Move a category's subtree count from its old ancestors to its new ones.

    The amount is read inside each UPDATE rather than loaded first, so it is
    the count current when the statement runs.
    """
    moved = aliased(Category)
    carried = select(moved.subtree_blog_count).where(moved.id == moved_id).scalar_subquery()
    column = Category.subtree_blog_count
    old_ids, new_ids = list(old_lineage), list(new_lineage)
    if old_ids:
        stmt = (
            update(Category)
            .where(Category.id.in_(old_ids))
            .values(subtree_blog_count=case((column > carried, column - carried), else_=0))
        )
        await db.execute(stmt.execution_options(synchronize_session="fetch"))
    if new_ids:
        stmt = update(Category).where(Category.id.in_(new_ids)).values(subtree_blog_count=column + carried)
        await db.execute(stmt.execution_options(synchronize_session="fetch"))
