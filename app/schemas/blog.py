"""Pydantic schemas for Blog."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.enums import BlogStatus
from app.schemas.user import UserSummary


class BlogBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    summary: str | None = Field(None, max_length=500)
    featured_image_url: str | None = None
    category_id: UUID | None = None
    is_comments_enabled: bool = True
    meta_title: str | None = Field(None, max_length=160)
    meta_description: str | None = Field(None, max_length=320)


class BlogCreate(BlogBase):
    slug: str | None = Field(None, max_length=250)
    tags: list[str] = Field(default_factory=list, max_length=20)


class BlogUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    summary: str | None = Field(None, max_length=500)
    featured_image_url: str | None = None
    category_id: UUID | None = None
    is_comments_enabled: bool | None = None
    meta_title: str | None = Field(None, max_length=160)
    meta_description: str | None = Field(None, max_length=320)
    tags: list[str] | None = None
    version: int | None = None  # optimistic lock; omit to skip the check

    @field_validator("title", "content", "is_comments_enabled")
    @classmethod
    def _not_null(cls, value):
        # omitted means unchanged; an explicit null is not a value these columns accept
        if value is None:
            raise ValueError("may not be null")
        return value


class BlogSchedule(BaseModel):
    scheduled_at: datetime


class BlogFeature(BaseModel):
    is_featured: bool = True


class TagSummary(BaseModel):
    id: UUID
    name: str
    slug: str

    model_config = {"from_attributes": True}


class BlogResponse(BaseModel):
    id: UUID
    title: str
    slug: str
    summary: str
    content: str
    featured_image_url: str | None = None
    status: BlogStatus
    is_featured: bool = False
    is_comments_enabled: bool = True
    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    reading_time_minutes: int = 1
    published_at: datetime | None = None
    scheduled_at: datetime | None = None
    meta_title: str
    meta_description: str
    category_id: UUID | None = None
    author: UserSummary | None = None
    tags: list[TagSummary] = []
    is_liked: bool = False
    version: int
    created_at: datetime
    updated_at: datetime


class BlogAdvancedSearch(BaseModel):
    q: str | None = None
    category_id: UUID | None = None
    author_id: UUID | None = None
    tag: str | None = None
