"""Notification model."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.models.enums import NotificationType


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(Enum(NotificationType, name="notification_type", native_enum=False, length=40), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(Text, nullable=True)
    related_blog_id = Column(Uuid, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=True)
    related_comment_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    related_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    is_email_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    recipient = relationship("User", foreign_keys=[recipient_id], back_populates="notifications")
    actor = relationship("User", foreign_keys=[actor_id])

    @property
    def requires_email(self) -> bool:
        return NotificationType(self.type).requires_email

    @property
    def priority(self) -> int:
        return NotificationType(self.type).priority
