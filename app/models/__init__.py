from app.models.user import User
from app.models.category import Category
from app.models.tag import Tag
from app.models.blog import Blog, BlogTag
from app.models.comment import Comment
from app.models.engagement import Follow, Like, BlogTarget, CommentTarget, LikeTarget
from app.models.notification import Notification

__all__ = [
    "User",
    "Category",
    "Tag",
    "Blog",
    "BlogTag",
    "Comment",
    "Follow",
    "Like",
    "BlogTarget",
    "CommentTarget",
    "LikeTarget",
    "Notification",
]
