"""Blog model and its tag join rows."""
import re
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship, validates

from app.core.exceptions import ValidationError
from app.db.session import Base
from app.models.audit import AuditMixin
from app.models.enums import BlogStatus

WORDS_PER_MINUTE = 200
SUMMARY_LENGTH = 150

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(content: str | None) -> str:
    return _TAG_RE.sub(" ", content or "")


def calculate_reading_time(content: str | None) -> int:
    """Minutes to read at 200 wpm, rounded, never less than one."""
    words = strip_html(content).split()
    if not words:
        return 1
    # round-half-up, so 300 words is 2 minutes
    return max(1, int(len(words) / WORDS_PER_MINUTE + 0.5))


def summarize(content: str | None, length: int = SUMMARY_LENGTH) -> str:
    if not content:
        return ""
    if len(content) <= length:
        return content
    return strip_html(content)[:length] + "..."


class Blog(AuditMixin, Base):
    __tablename__ = "blogs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(250), unique=True, nullable=False, index=True)
    summary = Column(String(500), nullable=True)
    content = Column(Text, nullable=False)
    featured_image_url = Column(Text, nullable=True)
    status = Column(
        Enum(BlogStatus, name="blog_status", native_enum=False, length=20),
        nullable=False,
        default=BlogStatus.DRAFT,
        index=True,
    )
    is_featured = Column(Boolean, nullable=False, default=False)
    is_comments_enabled = Column(Boolean, nullable=False, default=True)
    views_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)
    reading_time_minutes = Column(Integer, nullable=False, default=1)
    published_at = Column(DateTime, nullable=True, index=True)
    scheduled_at = Column(DateTime, nullable=True)
    meta_title = Column(String(160), nullable=True)
    meta_description = Column(String(320), nullable=True)

    author = relationship("User", back_populates="blogs")
    blog_tags = relationship("BlogTag", back_populates="blog", cascade="all, delete-orphan")

    @validates("content")
    def _recompute_reading_time(self, key, value):
        self.reading_time_minutes = calculate_reading_time(value)
        return value

    @property
    def effective_summary(self) -> str:
        if self.summary and self.summary.strip():
            return self.summary
        return summarize(self.content)

    @property
    def effective_meta_title(self) -> str:
        return self.meta_title if self.meta_title and self.meta_title.strip() else self.title

    @property
    def effective_meta_description(self) -> str:
        if self.meta_description and self.meta_description.strip():
            return self.meta_description
        return self.effective_summary

    @property
    def is_published(self) -> bool:
        return self.status == BlogStatus.PUBLISHED

    @property
    def current_status(self) -> BlogStatus:
        return BlogStatus(self.status or BlogStatus.DRAFT)

    def _require_transition(self, target: BlogStatus) -> None:
        current = self.current_status
        if not current.can_transition_to(target):
            raise ValidationError(f"Cannot move blog from {current.value} to {target.value}")

    def publish(self, now: datetime) -> None:
        """Publish; the first publish time is kept across re-publishes."""
        if self.current_status == BlogStatus.PUBLISHED:
            return
        self._require_transition(BlogStatus.PUBLISHED)
        self.status = BlogStatus.PUBLISHED
        if self.published_at is None:
            self.published_at = now
        self.scheduled_at = None

    def schedule(self, at: datetime, now: datetime) -> None:
        if at <= now:
            raise ValidationError("Scheduled time must be in the future")
        self._require_transition(BlogStatus.SCHEDULED)
        self.status = BlogStatus.SCHEDULED
        self.scheduled_at = at

    def archive(self) -> None:
        if self.current_status == BlogStatus.ARCHIVED:
            return
        self._require_transition(BlogStatus.ARCHIVED)
        self.status = BlogStatus.ARCHIVED

    def make_draft(self) -> None:
        if self.current_status != BlogStatus.DRAFT:
            self._require_transition(BlogStatus.DRAFT)
        self.status = BlogStatus.DRAFT
        self.published_at = None
        self.scheduled_at = None


class BlogTag(Base):
    __tablename__ = "blog_tags"
    __table_args__ = (UniqueConstraint("blog_id", "tag_id", name="uq_blog_tags_blog_tag"),)

    blog_id = Column(Uuid, ForeignKey("blogs.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    blog = relationship("Blog", back_populates="blog_tags")
    tag = relationship("Tag", back_populates="blog_tags")
