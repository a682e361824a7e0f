"""Engagement events handed to the notification worker after commit.

Events are queued on the session and only leave the process once the
transaction that produced them has committed; a rollback drops them.
"""
import logging
from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PENDING_EVENTS_KEY = "inkwell.pending_events"


@dataclass(frozen=True)
class EngagementEvent:
    kind: str
    recipient_id: str
    actor_id: str | None = None
    target_type: str | None = None
    target_id: str | None = None
    notification_id: str | None = None


def _str(value: UUID | str | None) -> str | None:
    return str(value) if value is not None else None


def queue_event(
    db: AsyncSession,
    kind: str,
    recipient_id: UUID,
    actor_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    notification_id: UUID | None = None,
) -> EngagementEvent:
    evt = EngagementEvent(
        kind=kind,
        recipient_id=str(recipient_id),
        actor_id=_str(actor_id),
        target_type=target_type,
        target_id=_str(target_id),
        notification_id=_str(notification_id),
    )
    db.info.setdefault(PENDING_EVENTS_KEY, []).append(evt)
    return evt


def dispatch(evt: EngagementEvent) -> None:
    from app.workers.notifications import deliver_notification

    deliver_notification.delay(asdict(evt))


@event.listens_for(Session, "after_commit")
def _flush_events(session: Session) -> None:
    pending = session.info.pop(PENDING_EVENTS_KEY, [])
    for evt in pending:
        try:
            dispatch(evt)
        except Exception:
            # the write is already committed; delivery is retried by the worker side
            logger.exception("Failed to enqueue %s event for %s", evt.kind, evt.recipient_id)


@event.listens_for(Session, "after_rollback")
def _drop_events(session: Session) -> None:
    dropped = session.info.pop(PENDING_EVENTS_KEY, [])
    if dropped:
        logger.debug("Dropped %d events after rollback", len(dropped))
