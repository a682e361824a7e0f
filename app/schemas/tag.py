"""Pydantic schemas for Tag."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.tag import TagPopularity


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    slug: str | None = Field(None, max_length=60)
    description: str | None = Field(None, max_length=200)
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class TagUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: bool | None = None
    version: int | None = None

    @field_validator("name", "is_active")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class TagResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None = None
    effective_color: str
    is_active: bool = True
    usage_count: int = 0
    popularity: TagPopularity
    is_popular: bool = False
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}
