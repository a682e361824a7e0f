"""User model."""
import uuid

from sqlalchemy import Boolean, Column, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.models.audit import AuditMixin
from app.models.enums import Role


class User(AuditMixin, Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False, default="")
    last_name = Column(String(50), nullable=False, default="")
    bio = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    role = Column(Enum(Role, name="user_role", native_enum=False, length=20), nullable=False, default=Role.USER)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    followers_count = Column(Integer, nullable=False, default=0)
    following_count = Column(Integer, nullable=False, default=0)
    blogs_count = Column(Integer, nullable=False, default=0)

    # Relationships
    blogs = relationship("Blog", back_populates="author")
    comments = relationship("Comment", back_populates="author")
    likes = relationship("Like", back_populates="user", cascade="all, delete-orphan")
    following = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )
    followers_rel = relationship(
        "Follow",
        foreign_keys="Follow.following_id",
        back_populates="following",
        cascade="all, delete-orphan",
    )
    notifications = relationship(
        "Notification",
        foreign_keys="Notification.recipient_id",
        back_populates="recipient",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.username

    def has_authority_level(self, required: Role) -> bool:
        return Role(self.role).has_authority_level(required)

    @property
    def can_moderate_content(self) -> bool:
        return Role(self.role).can_moderate_content
