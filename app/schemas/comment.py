"""Pydantic schemas for Comment."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.user import UserSummary


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    parent_id: UUID | None = None


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    reason: str | None = Field(None, max_length=500)
    version: int | None = None


class CommentReject(BaseModel):
    reason: str | None = Field(None, max_length=500)


class CommentBulkAction(BaseModel):
    ids: list[UUID] = Field(..., min_length=1, max_length=500)


class BulkResult(BaseModel):
    affected: int


class CommentResponse(BaseModel):
    id: UUID
    blog_id: UUID
    author_id: UUID
    parent_id: UUID | None = None
    content: str
    is_deleted: bool = False
    is_approved: bool = True
    is_edited: bool = False
    edit_reason: str | None = None
    likes_count: int = 0
    replies_count: int = 0
    author: UserSummary | None = None
    is_liked: bool = False
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentNode(CommentResponse):
    replies: list["CommentNode"] = []
