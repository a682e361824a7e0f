"""Pydantic schemas for Category."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

_COLOR = r"^#[0-9A-Fa-f]{6}$"


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, pattern=_COLOR)
    icon: str | None = Field(None, max_length=100)
    sort_order: int | None = None


class CategoryCreate(CategoryBase):
    slug: str | None = Field(None, max_length=120)
    parent_id: UUID | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    slug: str | None = Field(None, max_length=120)
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, pattern=_COLOR)
    icon: str | None = Field(None, max_length=100)
    sort_order: int | None = None
    is_active: bool | None = None
    version: int | None = None  # optimistic lock; omit to skip the check

    @field_validator("name", "is_active")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class CategoryMove(BaseModel):
    parent_id: UUID | None = None


class CategoryResponse(CategoryBase):
    id: UUID
    slug: str
    parent_id: UUID | None = None
    is_active: bool = True
    blog_count: int = 0
    subtree_blog_count: int = 0
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryTreeNode(BaseModel):
    id: UUID
    name: str
    slug: str
    color: str
    blog_count: int = 0
    subtree_blog_count: int = 0
    children: list["CategoryTreeNode"] = []


class CategoryStats(BaseModel):
    id: UUID
    depth: int
    full_path: str
    effective_color: str
    total_blog_count: int
