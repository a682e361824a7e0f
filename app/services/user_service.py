"""User profile management."""
import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.core.security import get_password_hash, verify_password
from app.models.enums import NotificationType, Role
from app.models.user import User
from app.schemas.pagination import Page, PageParams
from app.schemas.user import UserUpdate
from app.services.common import check_version, flush
from app.services.engagement_service import USER_SORTS
from app.services.notification_service import create_notification
from app.services.pagination import paginate

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: UUID, include_inactive: bool = False) -> User:
    user = await db.get(User, user_id)
    if user is None or not (user.is_active or include_inactive):
        raise NotFoundError("User not found")
    return user


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    user = (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


async def search_users(db: AsyncSession, term: str, params: PageParams) -> Page:
    pattern = f"%{term.strip()}%"
    q = select(User).where(
        User.is_active.is_(True),
        or_(User.username.ilike(pattern), User.first_name.ilike(pattern), User.last_name.ilike(pattern)),
    )
    return await paginate(db, q, params, USER_SORTS, default_order=User.username.asc())


async def update_profile(db: AsyncSession, user: User, data: UserUpdate) -> User:
    check_version(user, data.version)
    for field, value in data.model_dump(exclude_unset=True, exclude={"version"}).items():
        setattr(user, field, value)
    user.stamp(str(user.id))
    await flush(db)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = get_password_hash(new_password)
    user.stamp(str(user.id))
    await flush(db)
    await create_notification(db, recipient_id=user.id, notification_type=NotificationType.PASSWORD_CHANGED)


async def deactivate_user(db: AsyncSession, user_id: UUID, actor: User) -> User:
    """Users are never hard-deleted; deactivation hides them and blocks login."""
    if actor.id != user_id and not Role(actor.role).can_manage_users:
        raise PermissionDeniedError("Only admins can deactivate other users")
    user = await get_user(db, user_id, include_inactive=True)
    user.is_active = False
    user.stamp(str(actor.id))
    await flush(db)
    logger.info("User %s deactivated by %s", user_id, actor.id)
    return user


async def change_role(db: AsyncSession, user_id: UUID, role: Role, actor: User) -> User:
    if not Role(actor.role).can_manage_users:
        raise PermissionDeniedError("Only admins can change roles")
    user = await get_user(db, user_id)
    if user.id == actor.id and role < Role(actor.role):
        raise ValidationError("Admins cannot demote themselves")
    user.role = role
    user.stamp(str(actor.id))
    await flush(db)
    return user


async def verify_email(db: AsyncSession, user_id: UUID) -> User:
    user = await get_user(db, user_id)
    if not user.email_verified:
        user.email_verified = True
        await flush(db)
        await create_notification(db, recipient_id=user.id, notification_type=NotificationType.ACCOUNT_VERIFIED)
    return user
