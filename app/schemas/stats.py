"""Pydantic schemas for site and author statistics."""
from uuid import UUID

from pydantic import BaseModel

from app.models.enums import BlogStatus


class DashboardStats(BaseModel):
    total_users: int
    total_blogs: int
    total_comments: int
    total_likes: int
    blogs_by_status: dict[BlogStatus, int]


class DailyCount(BaseModel):
    date: str
    count: int


class DailyActivity(BaseModel):
    date: str
    blogs: int = 0
    comments: int = 0
    likes: int = 0


class AuthorStats(BaseModel):
    author_id: UUID
    blogs_by_status: dict[BlogStatus, int]
    total_views: int
    likes_received: int
    comments_received: int
    followers_count: int
