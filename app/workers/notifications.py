"""Celery tasks for notification delivery."""
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.celery_app import celery_app
from app.models.enums import NotificationType
from app.models.notification import Notification
from app.services.notification_service import mark_email_sent
from app.workers.runtime import run_with_session

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, body: str) -> None:
    # Placeholder: SMTP / transactional mail provider
    logger.info("Email to %s: %s", to, subject)


async def email_notification(db: AsyncSession, notification_id: UUID) -> bool:
    """Email a stored notification once. Returns False if there was nothing to send."""
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id).options(selectinload(Notification.recipient))
    )
    notification = result.scalar_one_or_none()
    if notification is None or notification.is_email_sent or not notification.recipient.is_active:
        return False
    send_email(notification.recipient.email, notification.title, notification.message)
    return await mark_email_sent(db, notification.id)


@celery_app.task(name="app.workers.notifications.deliver_notification", bind=True, max_retries=3)
def deliver_notification(self, event: dict[str, Any]) -> dict[str, Any]:
    """Deliver an engagement event that was queued by a committed transaction."""
    kind = NotificationType(event["kind"])
    notification_id = event.get("notification_id")
    if notification_id is None:
        logger.info("Event %s for %s has no stored notification", kind.value, event["recipient_id"])
        return {"status": "skipped"}
    if not kind.requires_email:
        logger.debug("In-app only notification %s (%s)", notification_id, kind.value)
        return {"status": "in_app"}
    try:
        sent = run_with_session(email_notification, UUID(notification_id))
    except Exception as exc:
        logger.error("Failed to email notification %s: %s", notification_id, exc)
        raise self.retry(exc=exc, countdown=30)
    return {"status": "emailed" if sent else "already_sent"}
