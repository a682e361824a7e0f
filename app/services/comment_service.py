"""Comment threads: creation, moderation, soft delete and listings.

Thread reads use a recursive CTE over ``parent_id``; visibility filters are
applied after the traversal so replies under a deleted comment stay reachable.
"""
import logging
from collections import Counter
from uuid import UUID

from sqlalchemy import Select, and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.core.clock import Clock
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.blog import Blog
from app.models.comment import DELETED_COMMENT_CONTENT, Comment
from app.models.engagement import Like
from app.models.enums import NotificationType
from app.models.user import User
from app.schemas.comment import CommentNode, CommentResponse
from app.schemas.pagination import Page, PageParams
from app.services import counters, hierarchy
from app.services.common import check_version, flush
from app.services.notification_service import create_notification
from app.services.pagination import paginate

logger = logging.getLogger(__name__)

COMMENT_SORTS = {
    "created_at": Comment.created_at,
    "likes_count": Comment.likes_count,
    "replies_count": Comment.replies_count,
}

VISIBLE = and_(Comment.is_deleted.is_(False), Comment.is_approved.is_(True))

TRENDING_SCORE = Comment.likes_count * 0.6 + Comment.replies_count * 0.4


def comment_to_response(comment: Comment, is_liked: bool = False) -> CommentResponse:
    """Build API response from Comment ORM object (author must be loaded)."""
    return CommentResponse.model_validate(comment).model_copy(update={"is_liked": is_liked})


async def get_user_liked_comment_ids(db: AsyncSession, user_id: UUID, comment_ids: list[UUID]) -> set[UUID]:
    if not comment_ids:
        return set()
    result = await db.execute(
        select(Like.comment_id).where(Like.user_id == user_id, Like.comment_id.in_(comment_ids))
    )
    return set(row[0] for row in result.all() if row[0])


async def to_responses(db: AsyncSession, comments: list[Comment], viewer_id: UUID | None = None) -> list[CommentResponse]:
    liked = await get_user_liked_comment_ids(db, viewer_id, [c.id for c in comments]) if viewer_id else set()
    return [comment_to_response(c, c.id in liked) for c in comments]


async def page_to_responses(db: AsyncSession, page: Page, viewer_id: UUID | None = None) -> Page[CommentResponse]:
    return Page[CommentResponse](
        items=await to_responses(db, page.items, viewer_id),
        total=page.total,
        page=page.page,
        size=page.size,
    )


def _with_author(q: Select) -> Select:
    return q.options(selectinload(Comment.author))


def _thread_cte(root_id: UUID):
    thread = select(Comment.id, Comment.parent_id).where(Comment.id == root_id).cte("thread", recursive=True)
    child = aliased(Comment)
    return thread.union(select(child.id, child.parent_id).where(child.parent_id == thread.c.id))


def _require_author_or_moderator(comment: Comment, user: User) -> None:
    if comment.author_id != user.id and not user.can_moderate_content:
        raise PermissionDeniedError("Only the author or a moderator can change this comment")


def _require_moderator(user: User) -> None:
    if not user.can_moderate_content:
        raise PermissionDeniedError("Moderator role required")


async def get_comment(db: AsyncSession, comment_id: UUID) -> Comment:
    comment = (await db.execute(_with_author(select(Comment).where(Comment.id == comment_id)))).scalar_one_or_none()
    if comment is None:
        raise NotFoundError("Comment not found")
    return comment


async def reload_comment(db: AsyncSession, comment_id: UUID) -> Comment:
    q = _with_author(select(Comment).where(Comment.id == comment_id)).execution_options(populate_existing=True)
    return (await db.execute(q)).scalar_one()


async def create_comment(
    db: AsyncSession,
    blog_id: UUID,
    author: User,
    content: str,
    parent_id: UUID | None = None,
) -> Comment:
    """Add a top-level comment or a reply and bump the blog and parent counters."""
    blog = await db.get(Blog, blog_id)
    if blog is None:
        raise NotFoundError("Blog not found")
    if not blog.current_status.can_receive_interactions:
        raise ValidationError("Comments are only allowed on published blogs")
    if not blog.is_comments_enabled:
        raise ValidationError("Comments are disabled for this blog")
    parent = None
    if parent_id is not None:
        parent = await db.get(Comment, parent_id)
        if parent is None:
            raise NotFoundError("Parent comment not found")
        if parent.blog_id != blog_id:
            raise ValidationError("Parent comment belongs to a different blog")
        if parent.is_deleted:
            raise ValidationError("Cannot reply to a deleted comment")
    content = content.strip()
    if not content:
        raise ValidationError("Comment content cannot be empty")
    comment = Comment(blog_id=blog_id, author_id=author.id, parent_id=parent_id, content=content)
    comment.stamp(str(author.id))
    db.add(comment)
    await flush(db)
    await counters.increment_blog_comments(db, blog_id)
    if parent is not None:
        await counters.increment_replies(db, parent.id)
        await create_notification(
            db,
            recipient_id=parent.author_id,
            actor_id=author.id,
            notification_type=NotificationType.COMMENT_REPLIED,
            related_blog_id=blog_id,
            related_comment_id=comment.id,
        )
    else:
        await create_notification(
            db,
            recipient_id=blog.author_id,
            actor_id=author.id,
            notification_type=NotificationType.BLOG_COMMENTED,
            related_blog_id=blog_id,
            related_comment_id=comment.id,
        )
    return await reload_comment(db, comment.id)


async def add_reply(db: AsyncSession, parent_id: UUID, author: User, content: str) -> Comment:
    parent = await get_comment(db, parent_id)
    return await create_comment(db, parent.blog_id, author, content, parent_id=parent.id)


async def get_thread_ids(db: AsyncSession, root_id: UUID) -> dict[UUID, UUID | None]:
    """``{id: parent_id}`` for the root and all of its transitive replies."""
    cte = _thread_cte(root_id)
    return {row.id: row.parent_id for row in (await db.execute(select(cte))).all()}


async def get_comment_thread(db: AsyncSession, root_id: UUID) -> list[Comment]:
    """Visible comments in the thread under ``root_id``, oldest first."""
    await get_comment(db, root_id)
    cte = _thread_cte(root_id)
    q = (
        _with_author(select(Comment))
        .where(Comment.id.in_(select(cte.c.id)), VISIBLE)
        .order_by(Comment.created_at.asc(), Comment.id)
    )
    return list((await db.execute(q)).scalars().all())


async def get_comment_tree(db: AsyncSession, root_id: UUID, viewer_id: UUID | None = None) -> CommentNode:
    """Nested thread. Deleted comments stay as placeholders; unapproved ones are
    dropped and their replies attach to the nearest shown ancestor."""
    root = await get_comment(db, root_id)
    parents = await get_thread_ids(db, root_id)
    rows = {
        c.id: c
        for c in (await db.execute(_with_author(select(Comment)).where(Comment.id.in_(parents)))).scalars()
    }
    shown = {k for k, c in rows.items() if c.is_approved or k == root.id}
    attach: dict[UUID, UUID | None] = {}
    for key in shown:
        if key == root.id:
            attach[key] = None
            continue
        chain = hierarchy.ancestors(parents, key)
        attach[key] = next((a for a in reversed(chain) if a in shown), root.id)
    children = hierarchy.children_index(attach, sort_key=lambda k: (rows[k].created_at, str(k)))
    liked = await get_user_liked_comment_ids(db, viewer_id, list(shown)) if viewer_id else set()

    def make(key, replies):
        base = comment_to_response(rows[key], key in liked)
        return CommentNode(**base.model_dump(), replies=replies)

    return hierarchy.build_forest([root.id], children, make)[0]


async def remove_reply(db: AsyncSession, reply_id: UUID, actor: User) -> int:
    """Hard-remove a reply and everything under it. Returns rows removed."""
    _require_moderator(actor)
    reply = await get_comment(db, reply_id)
    if reply.parent_id is None:
        raise ValidationError("Only replies can be removed; soft delete top-level comments instead")
    thread = await get_thread_ids(db, reply_id)
    live = await db.execute(select(Comment.id).where(Comment.id.in_(thread), Comment.is_deleted.is_(False)))
    live_count = len(live.all())
    parent_id, blog_id = reply.parent_id, reply.blog_id
    await db.execute(
        delete(Comment).where(Comment.id.in_(thread)).execution_options(synchronize_session="fetch")
    )
    await counters.decrement_replies(db, parent_id)
    await counters.subtract_blog_comments(db, blog_id, live_count)
    logger.info("Removed reply %s (%d comments) from blog %s", reply_id, len(thread), blog_id)
    return len(thread)


async def soft_delete_comment(db: AsyncSession, comment_id: UUID, actor: User) -> Comment:
    """Replace content with a placeholder, keeping the row and its replies.

    The blog's comment count drops only on the first deletion.
    """
    comment = await get_comment(db, comment_id)
    _require_author_or_moderator(comment, actor)
    result = await db.execute(
        update(Comment)
        .where(Comment.id == comment_id, Comment.is_deleted.is_(False))
        .values(
            is_deleted=True,
            content=DELETED_COMMENT_CONTENT,
            modified_by=str(actor.id),
            version=Comment.version + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        await counters.decrement_blog_comments(db, comment.blog_id)
    return await reload_comment(db, comment_id)


async def restore_comment(db: AsyncSession, comment_id: UUID, actor: User) -> Comment:
    """Undo a soft delete. The original text is not recoverable."""
    _require_moderator(actor)
    comment = await get_comment(db, comment_id)
    result = await db.execute(
        update(Comment)
        .where(Comment.id == comment_id, Comment.is_deleted.is_(True))
        .values(is_deleted=False, modified_by=str(actor.id), version=Comment.version + 1)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        await counters.increment_blog_comments(db, comment.blog_id)
    return await reload_comment(db, comment_id)


async def edit_comment(
    db: AsyncSession,
    comment_id: UUID,
    actor: User,
    content: str,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Comment:
    comment = await get_comment(db, comment_id)
    _require_author_or_moderator(comment, actor)
    check_version(comment, expected_version)
    if comment.is_deleted:
        raise ValidationError("Deleted comments cannot be edited")
    content = content.strip()
    if not content:
        raise ValidationError("Comment content cannot be empty")
    comment.content = content
    comment.mark_as_edited(reason)
    comment.stamp(str(actor.id))
    await flush(db)
    return comment


# Moderation

async def approve_comment(db: AsyncSession, comment_id: UUID, actor: User) -> Comment:
    _require_moderator(actor)
    comment = await get_comment(db, comment_id)
    if comment.is_approved:
        return comment
    comment.is_approved = True
    comment.stamp(str(actor.id))
    await flush(db)
    await create_notification(
        db,
        recipient_id=comment.author_id,
        actor_id=actor.id,
        notification_type=NotificationType.COMMENT_APPROVED,
        related_blog_id=comment.blog_id,
        related_comment_id=comment.id,
    )
    return comment


async def reject_comment(db: AsyncSession, comment_id: UUID, actor: User, reason: str | None = None) -> Comment:
    """Hide a comment from public listings. A reason puts it in the flagged queue."""
    _require_moderator(actor)
    comment = await get_comment(db, comment_id)
    comment.is_approved = False
    if reason:
        comment.edit_reason = reason
    comment.stamp(str(actor.id))
    await flush(db)
    await create_notification(
        db,
        recipient_id=comment.author_id,
        actor_id=actor.id,
        notification_type=NotificationType.COMMENT_FLAGGED if reason else NotificationType.COMMENT_REJECTED,
        message=reason,
        related_blog_id=comment.blog_id,
        related_comment_id=comment.id,
    )
    return comment


async def bulk_approve_comments(db: AsyncSession, comment_ids: list[UUID], actor: User) -> int:
    _require_moderator(actor)
    if not comment_ids:
        return 0
    result = await db.execute(
        update(Comment)
        .where(Comment.id.in_(comment_ids), Comment.is_approved.is_(False))
        .values(is_approved=True, modified_by=str(actor.id), version=Comment.version + 1)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def bulk_delete_comments(db: AsyncSession, comment_ids: list[UUID], actor: User) -> int:
    """Soft-delete many comments; each blog's count drops by the rows actually changed."""
    _require_moderator(actor)
    if not comment_ids:
        return 0
    result = await db.execute(
        update(Comment)
        .where(Comment.id.in_(comment_ids), Comment.is_deleted.is_(False))
        .values(
            is_deleted=True,
            content=DELETED_COMMENT_CONTENT,
            modified_by=str(actor.id),
            version=Comment.version + 1,
        )
        .returning(Comment.blog_id)
        .execution_options(synchronize_session=False)
    )
    rows = result.all()
    for blog_id, removed in Counter(row.blog_id for row in rows).items():
        await counters.subtract_blog_comments(db, blog_id, removed)
    logger.info("Bulk deleted %d comments", len(rows))
    return len(rows)


async def get_comments_awaiting_approval(db: AsyncSession, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.is_approved.is_(False), Comment.is_deleted.is_(False))
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.asc())


async def get_flagged_comments(db: AsyncSession, params: PageParams) -> Page:
    """Rejected comments that carry a moderator reason."""
    q = _with_author(select(Comment)).where(
        Comment.is_approved.is_(False),
        Comment.is_deleted.is_(False),
        Comment.edit_reason.is_not(None),
    )
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.asc())


async def get_deleted_comments(db: AsyncSession, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.is_deleted.is_(True))
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.updated_at.desc())


# Listings

async def get_top_level_comments(db: AsyncSession, blog_id: UUID, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.blog_id == blog_id, Comment.parent_id.is_(None), VISIBLE)
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.asc())


async def get_replies(db: AsyncSession, parent_id: UUID, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.parent_id == parent_id, VISIBLE)
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.asc())


async def get_visible_comments(db: AsyncSession, blog_id: UUID, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.blog_id == blog_id, VISIBLE)
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.asc())


async def get_comments_by_author(db: AsyncSession, author_id: UUID, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(Comment.author_id == author_id, VISIBLE)
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.desc())


async def get_trending_comments(db: AsyncSession, params: PageParams, clock: Clock, days: int | None = None) -> Page:
    since = clock.days_ago(days or settings.TRENDING_WINDOW_DAYS)
    q = _with_author(select(Comment)).where(VISIBLE, Comment.created_at >= since)
    return await paginate(db, q, params, COMMENT_SORTS, default_order=[TRENDING_SCORE.desc(), Comment.created_at.desc()])


async def get_most_liked_comments(db: AsyncSession, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(VISIBLE)
    return await paginate(
        db, q, params, COMMENT_SORTS, default_order=[Comment.likes_count.desc(), Comment.created_at.desc()]
    )


async def get_most_replied_comments(db: AsyncSession, params: PageParams) -> Page:
    q = _with_author(select(Comment)).where(VISIBLE)
    return await paginate(
        db, q, params, COMMENT_SORTS, default_order=[Comment.replies_count.desc(), Comment.created_at.desc()]
    )


async def search_comments(db: AsyncSession, term: str, params: PageParams) -> Page:
    if not term or not term.strip():
        raise ValidationError("Search term is required")
    q = _with_author(select(Comment)).where(VISIBLE, Comment.content.ilike(f"%{term.strip()}%"))
    return await paginate(db, q, params, COMMENT_SORTS, default_order=Comment.created_at.desc())


async def get_conversation_participants(
    db: AsyncSession,
    blog_id: UUID,
    exclude_user_id: UUID | None = None,
) -> list[User]:
    """Distinct users with a visible comment on the blog."""
    commenters = select(Comment.author_id).where(Comment.blog_id == blog_id, VISIBLE)
    q = select(User).where(User.id.in_(commenters), User.is_active.is_(True)).order_by(User.username)
    if exclude_user_id is not None:
        q = q.where(User.id != exclude_user_id)
    return list((await db.execute(q)).scalars().all())
