"""Site dashboard, author statistics and maintenance listings."""
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Clock, get_clock, get_current_moderator, get_current_user, get_db, get_page_params
from app.models.user import User
from app.schemas.blog import BlogResponse
from app.schemas.pagination import Page, PageParams
from app.schemas.stats import AuthorStats, DailyActivity, DailyCount, DashboardStats
from app.services import blog_service, stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    """Site-wide totals and blogs per status."""
    return await stats_service.get_dashboard_stats(db)


@router.get("/activity", response_model=list[DailyActivity])
async def daily_activity(
    days: int = Query(30, ge=1, le=365),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    """Blogs published, comments and likes per day for the last ``days`` days."""
    return await stats_service.get_daily_activity(db, clock, days)


@router.get("/likes/daily", response_model=list[DailyCount])
async def daily_likes(
    start: datetime,
    end: datetime,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_daily_like_stats(db, start, end)


@router.get("/comments/daily", response_model=list[DailyCount])
async def daily_comments(
    start: datetime,
    end: datetime,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_daily_comment_stats(db, start, end)


@router.get("/authors/me", response_model=AuthorStats)
async def my_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_author_stats(db, current_user.id)


@router.get("/authors/{author_id}", response_model=AuthorStats)
async def author_stats(
    author_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_author_stats(db, author_id)


@router.get("/blogs/published", response_model=Page[BlogResponse])
async def blogs_published_between(
    start: datetime,
    end: datetime,
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
):
    page = await stats_service.find_blogs_by_date_range(db, start, end, params)
    return await blog_service.page_to_responses(db, page)


@router.get("/blogs/old-drafts", response_model=list[BlogResponse])
async def old_drafts(
    days: int = Query(90, ge=1),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    blogs = await stats_service.find_old_drafts(db, clock.now() - timedelta(days=days))
    return await blog_service.to_responses(db, blogs)


@router.get("/blogs/low-engagement", response_model=list[BlogResponse])
async def low_engagement(
    days: int = Query(30, ge=1),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    blogs = await stats_service.find_low_engagement_blogs(db, clock.days_ago(days))
    return await blog_service.to_responses(db, blogs)
