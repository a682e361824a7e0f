"""Comment model: threaded replies rooted at a blog."""
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.models.audit import AuditMixin

DELETED_COMMENT_CONTENT = "[Comment deleted]"


class Comment(AuditMixin, Base):
    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    blog_id = Column(Uuid, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=True)
    likes_count = Column(Integer, nullable=False, default=0)
    replies_count = Column(Integer, nullable=False, default=0)
    is_edited = Column(Boolean, nullable=False, default=False)
    edit_reason = Column(String(500), nullable=True)

    author = relationship("User", back_populates="comments")
    likes = relationship("Like", back_populates="comment", cascade="all, delete-orphan")

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    @property
    def has_replies(self) -> bool:
        return (self.replies_count or 0) > 0

    @property
    def is_visible(self) -> bool:
        return not self.is_deleted and bool(self.is_approved)

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.content = DELETED_COMMENT_CONTENT

    def mark_as_edited(self, reason: str | None) -> None:
        self.is_edited = True
        self.edit_reason = reason
