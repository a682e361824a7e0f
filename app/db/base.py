"""SQLAlchemy declarative base and model imports for Alembic."""
from app.db.session import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.category import Category  # noqa: F401
from app.models.tag import Tag  # noqa: F401
from app.models.blog import Blog, BlogTag  # noqa: F401
from app.models.comment import Comment  # noqa: F401
from app.models.engagement import Follow, Like  # noqa: F401
from app.models.notification import Notification  # noqa: F401

__all__ = ["Base", "User", "Category", "Tag", "Blog", "BlogTag", "Comment", "Follow", "Like", "Notification"]
