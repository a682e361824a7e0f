"""Pydantic schemas for Notification."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.models.enums import NotificationType
from app.schemas.user import UserSummary


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: UUID
    actor_id: UUID | None = None
    type: NotificationType
    title: str
    message: str
    action_url: str | None = None
    related_blog_id: UUID | None = None
    related_comment_id: UUID | None = None
    related_user_id: UUID | None = None
    priority: int
    is_read: bool = False
    created_at: datetime
    actor: UserSummary | None = None

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    count: int
