"""Notification creation and queries."""
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.enums import NotificationType
from app.models.notification import Notification
from app.schemas.pagination import Page, PageParams
from app.services.events import queue_event
from app.services.pagination import paginate


async def create_notification(
    db: AsyncSession,
    *,
    recipient_id: UUID,
    notification_type: NotificationType,
    actor_id: UUID | None = None,
    message: str | None = None,
    action_url: str | None = None,
    related_blog_id: UUID | None = None,
    related_comment_id: UUID | None = None,
    related_user_id: UUID | None = None,
) -> Notification | None:
    """Persist a notification and queue its delivery. Skips self-notifications."""
    if actor_id is not None and recipient_id == actor_id:
        return None
    meta = notification_type.meta
    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        type=notification_type,
        title=meta.display_name,
        message=message or meta.default_message,
        action_url=action_url,
        related_blog_id=related_blog_id,
        related_comment_id=related_comment_id,
        related_user_id=related_user_id,
    )
    db.add(notification)
    await db.flush()
    if related_comment_id is not None:
        target_type, target_id = "comment", related_comment_id
    elif related_blog_id is not None:
        target_type, target_id = "blog", related_blog_id
    else:
        target_type, target_id = "user", related_user_id
    queue_event(
        db,
        notification_type.value,
        recipient_id,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        notification_id=notification.id,
    )
    return notification


async def get_notifications(
    db: AsyncSession,
    recipient_id: UUID,
    params: PageParams,
    unread_only: bool = False,
) -> Page:
    """Notifications for a user, most recent first."""
    q = (
        select(Notification)
        .where(Notification.recipient_id == recipient_id)
        .options(selectinload(Notification.actor))
    )
    if unread_only:
        q = q.where(Notification.is_read.is_(False))
    return await paginate(
        db,
        q,
        params,
        sortable={"created_at": Notification.created_at, "type": Notification.type},
        default_order=Notification.created_at.desc(),
    )


async def get_unread_count(db: AsyncSession, recipient_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == recipient_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def mark_all_read(db: AsyncSession, recipient_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    stmt = (
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def mark_one_read(db: AsyncSession, recipient_id: UUID, notification_id: UUID) -> bool:
    stmt = (
        update(Notification)
        .where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    return (result.rowcount or 0) > 0


async def mark_email_sent(db: AsyncSession, notification_id: UUID) -> bool:
    stmt = (
        update(Notification)
        .where(Notification.id == notification_id, Notification.is_email_sent.is_(False))
        .values(is_email_sent=True)
    )
    result = await db.execute(stmt)
    return (result.rowcount or 0) > 0
