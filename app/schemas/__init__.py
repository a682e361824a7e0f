from app.schemas.user import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserPublic,
    UserSummary,
    Token,
    LoginRequest,
)
from app.schemas.blog import BlogCreate, BlogUpdate, BlogResponse
from app.schemas.category import CategoryCreate, CategoryUpdate, CategoryResponse, CategoryTreeNode
from app.schemas.comment import CommentCreate, CommentUpdate, CommentResponse, CommentNode
from app.schemas.notification import NotificationResponse
from app.schemas.pagination import Page, PageParams
from app.schemas.tag import TagCreate, TagUpdate, TagResponse
