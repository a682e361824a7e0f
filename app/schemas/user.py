"""Pydantic schemas for User."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.enums import Role


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    first_name: str = Field("", max_length=50)
    last_name: str = Field("", max_length=50)
    bio: str | None = Field(None, max_length=1000)
    avatar_url: str | None = None
    website_url: str | None = None


class UserCreate(UserBase):
    email: EmailStr
    password: str = Field(..., min_length=8)


class UserUpdate(BaseModel):
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    bio: str | None = Field(None, max_length=1000)
    avatar_url: str | None = None
    website_url: str | None = None
    version: int | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class RoleUpdate(BaseModel):
    role: Role


class UserSummary(BaseModel):
    id: UUID
    username: str
    full_name: str
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class UserPublic(UserBase):
    id: UUID
    full_name: str
    role: Role
    followers_count: int = 0
    following_count: int = 0
    blogs_count: int = 0
    is_following: bool = False  # Set by API when viewer is authenticated
    created_at: datetime

    model_config = {"from_attributes": True}


class UserResponse(UserPublic):
    email: str
    is_active: bool = True
    email_verified: bool = False
    version: int


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class TokenRefresh(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginByUsernameRequest(BaseModel):
    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)
