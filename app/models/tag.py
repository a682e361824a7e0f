"""Tag model."""
import enum
import uuid

from sqlalchemy import Boolean, Column, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.models.audit import AuditMixin

DEFAULT_TAG_COLOR = "#3B82F6"
POPULAR_THRESHOLD = 10


class TagPopularity(str, enum.Enum):
    UNUSED = "UNUSED"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    TRENDING = "TRENDING"


def popularity_for(usage_count: int) -> TagPopularity:
    if usage_count <= 0:
        return TagPopularity.UNUSED
    if usage_count <= 5:
        return TagPopularity.LOW
    if usage_count <= 20:
        return TagPopularity.MEDIUM
    if usage_count <= 50:
        return TagPopularity.HIGH
    return TagPopularity.TRENDING


class Tag(AuditMixin, Base):
    __tablename__ = "tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    slug = Column(String(60), unique=True, nullable=False, index=True)
    description = Column(String(200), nullable=True)
    color = Column(String(7), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    usage_count = Column(Integer, nullable=False, default=0)

    blog_tags = relationship("BlogTag", back_populates="tag", cascade="all, delete-orphan")

    @property
    def effective_color(self) -> str:
        return self.color if self.color and self.color.strip() else DEFAULT_TAG_COLOR

    @property
    def is_popular(self) -> bool:
        return (self.usage_count or 0) > POPULAR_THRESHOLD

    @property
    def popularity(self) -> TagPopularity:
        return popularity_for(self.usage_count or 0)

    @property
    def can_be_deleted(self) -> bool:
        return (self.usage_count or 0) == 0
