"""Engagement models: Follow and Like.

A like points at exactly one of a blog or a comment. In code the target is
the tagged union ``BlogTarget | CommentTarget``; in the table it is two
nullable foreign keys guarded by a CHECK constraint.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.orm import relationship

from app.core.exceptions import ValidationError
from app.db.session import Base


@dataclass(frozen=True)
class BlogTarget:
    id: UUID
    kind = "blog"


@dataclass(frozen=True)
class CommentTarget:
    id: UUID
    kind = "comment"


LikeTarget = BlogTarget | CommentTarget


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_follower_following"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )

    follower_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    following_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    is_notification_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    follower = relationship("User", foreign_keys=[follower_id], back_populates="following")
    following = relationship("User", foreign_keys=[following_id], back_populates="followers_rel")

    @property
    def is_self_follow(self) -> bool:
        return self.follower_id is not None and self.follower_id == self.following_id


class Like(Base):
    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("user_id", "blog_id", name="uq_likes_user_blog"),
        UniqueConstraint("user_id", "comment_id", name="uq_likes_user_comment"),
        CheckConstraint("(blog_id IS NULL) <> (comment_id IS NULL)", name="ck_likes_single_target"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blog_id = Column(Uuid, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=True, index=True)
    comment_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="likes")
    comment = relationship("Comment", back_populates="likes")

    @classmethod
    def for_target(cls, user_id: UUID, target: LikeTarget) -> "Like":
        match target:
            case BlogTarget(id=blog_id):
                return cls(user_id=user_id, blog_id=blog_id)
            case CommentTarget(id=comment_id):
                return cls(user_id=user_id, comment_id=comment_id)
        raise ValidationError("Like target must be a blog or a comment")

    @property
    def target(self) -> LikeTarget:
        validate_like_target(self)
        if self.blog_id is not None:
            return BlogTarget(self.blog_id)
        return CommentTarget(self.comment_id)


def validate_like_target(like: Like) -> None:
    if like.blog_id is None and like.comment_id is None:
        raise ValidationError("Like must be associated with either a blog or a comment")
    if like.blog_id is not None and like.comment_id is not None:
        raise ValidationError("Like cannot be associated with both a blog and a comment")


@event.listens_for(Like, "before_insert")
@event.listens_for(Like, "before_update")
def _check_like_target(mapper, connection, target: Like) -> None:
    validate_like_target(target)


@event.listens_for(Follow, "before_insert")
@event.listens_for(Follow, "before_update")
def _check_follow(mapper, connection, target: Follow) -> None:
    if target.is_self_follow:
        raise ValidationError("Users cannot follow themselves")
