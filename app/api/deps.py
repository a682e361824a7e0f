"""API dependencies: auth, db session, clock, paging."""
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock  # noqa: F401
from app.core.config import settings
from app.core.security import ACCESS, decode_token
from app.db.session import get_db
from app.models.enums import Role
from app.models.user import User
from app.schemas.pagination import PageParams, SortDirection

security = HTTPBearer(auto_error=False)


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    if not credentials:
        return None
    payload = decode_token(credentials.credentials, expected_type=ACCESS)
    if not payload:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    try:
        user_id = UUID(sub)
    except ValueError:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is not None and not user.is_active:
        return None
    return user


async def get_current_user(
    user: User | None = Depends(get_current_user_optional),
) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(required: Role):
    async def _check(user: User = Depends(get_current_user)) -> User:
        if not user.has_authority_level(required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="The user does not have enough privileges",
            )
        return user

    return _check


get_current_moderator = require_role(Role.MODERATOR)
get_current_admin = require_role(Role.ADMIN)


def get_page_params(
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: str | None = Query(None),
    direction: SortDirection = Query(SortDirection.DESC),
) -> PageParams:
    return PageParams(page=page, size=size, sort=sort, direction=direction)
