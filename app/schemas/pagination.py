"""Pagination request/response schemas."""
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, computed_field

from app.core.config import settings

T = TypeVar("T")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PageParams(BaseModel):
    page: int = Field(0, ge=0)
    size: int = Field(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    sort: str | None = None
    direction: SortDirection = SortDirection.DESC


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int

    @computed_field
    @property
    def pages(self) -> int:
        return (self.total + self.size - 1) // self.size if self.size else 0
