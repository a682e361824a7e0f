"""Site and author statistics: totals, per-status counts and daily series.

Daily series group on the calendar date of a timestamp column and are
zero-filled, so every day in the requested window appears once.
"""
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import Clock
from app.core.exceptions import ValidationError
from app.models.blog import Blog
from app.models.comment import Comment
from app.models.engagement import Like
from app.models.enums import BlogStatus
from app.models.user import User
from app.schemas.pagination import Page, PageParams
from app.schemas.stats import AuthorStats, DailyActivity, DailyCount, DashboardStats
from app.services.blog_service import BLOG_SORTS, published_blogs
from app.services.comment_service import VISIBLE
from app.services.pagination import paginate
from app.services.user_service import get_user

LOW_ENGAGEMENT_MAX_VIEWS = 10


def _check_window(start: datetime, end: datetime) -> None:
    if end < start:
        raise ValidationError("End of the date range is before its start")


def _days(start: datetime, end: datetime) -> list[str]:
    first, last = start.date(), end.date()
    return [(first + timedelta(days=i)).isoformat() for i in range((last - first).days + 1)]


async def _daily(db: AsyncSession, column, start: datetime, end: datetime, *criteria) -> list[DailyCount]:
    _check_window(start, end)
    day = func.date(column)
    q = (
        select(day.label("day"), func.count().label("count"))
        .where(column >= start, column <= end, *criteria)
        .group_by(day)
    )
    # func.date comes back as a string on sqlite and a date on postgres
    counts = {str(row.day): row.count for row in await db.execute(q)}
    return [DailyCount(date=d, count=counts.get(d, 0)) for d in _days(start, end)]


async def count_by_status(db: AsyncSession, author_id: UUID | None = None) -> dict[BlogStatus, int]:
    q = select(Blog.status, func.count(Blog.id)).group_by(Blog.status)
    if author_id is not None:
        q = q.where(Blog.author_id == author_id)
    counts = {BlogStatus(status): n for status, n in (await db.execute(q)).all()}
    return {status: counts.get(status, 0) for status in BlogStatus}


async def get_daily_blog_stats(db: AsyncSession, start: datetime, end: datetime) -> list[DailyCount]:
    """Blogs published per day."""
    return await _daily(db, Blog.published_at, start, end, Blog.status == BlogStatus.PUBLISHED)


async def get_daily_comment_stats(db: AsyncSession, start: datetime, end: datetime) -> list[DailyCount]:
    return await _daily(db, Comment.created_at, start, end, Comment.is_deleted.is_(False))


async def get_daily_like_stats(db: AsyncSession, start: datetime, end: datetime) -> list[DailyCount]:
    return await _daily(db, Like.created_at, start, end)


async def get_daily_activity(db: AsyncSession, clock: Clock, days: int) -> list[DailyActivity]:
    end = clock.now()
    start = clock.start_of_day() - timedelta(days=days - 1)
    series = {d: DailyActivity(date=d) for d in _days(start, end)}
    for field, daily in (
        ("blogs", get_daily_blog_stats),
        ("comments", get_daily_comment_stats),
        ("likes", get_daily_like_stats),
    ):
        for item in await daily(db, start, end):
            setattr(series[item.date], field, item.count)
    return list(series.values())


async def count_likes_received(db: AsyncSession, author_id: UUID) -> int:
    q = select(func.count(Like.id)).join(Blog, Like.blog_id == Blog.id).where(Blog.author_id == author_id)
    return await db.scalar(q) or 0


async def get_dashboard_stats(db: AsyncSession) -> DashboardStats:
    return DashboardStats(
        total_users=await db.scalar(select(func.count(User.id)).where(User.is_active.is_(True))) or 0,
        total_blogs=await db.scalar(select(func.count(Blog.id))) or 0,
        total_comments=await db.scalar(select(func.count(Comment.id)).where(VISIBLE)) or 0,
        total_likes=await db.scalar(select(func.count(Like.id))) or 0,
        blogs_by_status=await count_by_status(db),
    )


async def get_author_stats(db: AsyncSession, author_id: UUID) -> AuthorStats:
    author = await get_user(db, author_id)
    views = await db.scalar(select(func.coalesce(func.sum(Blog.views_count), 0)).where(Blog.author_id == author_id))
    comments = await db.scalar(
        select(func.count(Comment.id)).join(Blog, Comment.blog_id == Blog.id).where(Blog.author_id == author_id, VISIBLE)
    )
    return AuthorStats(
        author_id=author.id,
        blogs_by_status=await count_by_status(db, author_id),
        total_views=int(views or 0),
        likes_received=await count_likes_received(db, author_id),
        comments_received=comments or 0,
        followers_count=author.followers_count,
    )


async def find_blogs_by_date_range(db: AsyncSession, start: datetime, end: datetime, params: PageParams) -> Page:
    _check_window(start, end)
    q = published_blogs().where(Blog.published_at >= start, Blog.published_at <= end)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def find_old_drafts(db: AsyncSession, cutoff: datetime) -> list[Blog]:
    """Drafts untouched since ``cutoff``, oldest first."""
    q = (
        select(Blog)
        .options(selectinload(Blog.author))
        .where(Blog.status == BlogStatus.DRAFT, Blog.updated_at < cutoff)
        .order_by(Blog.updated_at)
    )
    return list((await db.execute(q)).scalars().all())


async def find_low_engagement_blogs(db: AsyncSession, cutoff: datetime) -> list[Blog]:
    """Published before ``cutoff`` with no likes, no comments and few views."""
    q = published_blogs().where(
        Blog.published_at < cutoff,
        Blog.likes_count == 0,
        Blog.comments_count == 0,
        Blog.views_count < LOW_ENGAGEMENT_MAX_VIEWS,
    ).order_by(Blog.published_at)
    return list((await db.execute(q)).scalars().all())
