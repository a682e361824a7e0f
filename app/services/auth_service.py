"""Authentication business logic."""
import logging
import uuid
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.security import create_access_token, create_refresh_token, get_password_hash, verify_password
from app.models.enums import NotificationType, Role
from app.models.user import User
from app.schemas.user import UserCreate, UserPublic, UserResponse
from app.services.common import flush
from app.services.notification_service import create_notification

logger = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, data: UserCreate, role: Role = Role.USER) -> User:
    if await get_user_by_email(db, data.email):
        raise ConflictError("Email already registered")
    if await get_user_by_username(db, data.username):
        raise ConflictError("Username already taken")
    user = User(
        id=uuid.uuid4(),
        username=data.username,
        email=data.email.lower(),
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        bio=data.bio,
        avatar_url=data.avatar_url,
        website_url=data.website_url,
        role=role,
    )
    user.stamp(str(user.id))
    db.add(user)
    await flush(db, "Username or email already registered")
    await create_notification(db, recipient_id=user.id, notification_type=NotificationType.WELCOME)
    logger.info("Registered user %s (%s)", user.username, user.id)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


async def authenticate_user_by_username(db: AsyncSession, username: str, password: str) -> User | None:
    user = await get_user_by_username(db, username)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


def user_to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


def user_to_public(user: User, is_following: bool = False) -> UserPublic:
    return UserPublic.model_validate(user).model_copy(update={"is_following": is_following})


def create_tokens_for_user(user: User) -> tuple[str, str]:
    role = user.role.value if isinstance(user.role, Role) else user.role
    return create_access_token(user.id, role=role), create_refresh_token(user.id)


async def get_user_by_id_for_refresh(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    return result.scalar_one_or_none()
