"""Category model: a tree stored as rows with a nullable parent_id.

Tree walks go through ``app.services.hierarchy`` over ``{id: parent_id}``
indexes rather than in-memory parent/children references.
"""
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Uuid

from app.db.session import Base
from app.models.audit import AuditMixin

DEFAULT_CATEGORY_COLOR = "#6B7280"


class Category(AuditMixin, Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    parent_id = Column(Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    color = Column(String(7), nullable=True)
    icon = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=True)
    # blogs assigned directly to this node
    blog_count = Column(Integer, nullable=False, default=0)
    # blogs assigned anywhere in this node's subtree
    subtree_blog_count = Column(Integer, nullable=False, default=0)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
