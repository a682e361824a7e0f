"""Notifications API."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, get_page_params
from app.models.user import User
from app.schemas.notification import NotificationResponse, UnreadCount
from app.schemas.pagination import Page, PageParams
from app.services.notification_service import (
    get_notifications,
    get_unread_count,
    mark_all_read,
    mark_one_read,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=Page[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await get_notifications(db, current_user.id, params, unread_only=unread_only)
    return Page[NotificationResponse](
        items=[NotificationResponse.model_validate(n) for n in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await get_unread_count(db, current_user.id)
    return UnreadCount(count=count)


@router.post("/mark-all-read")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await mark_all_read(db, current_user.id)
    await db.commit()
    return {"marked": updated}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changed = await mark_one_read(db, current_user.id, notification_id)
    await db.commit()
    return {"marked": 1 if changed else 0}
