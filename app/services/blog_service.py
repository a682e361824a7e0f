"""Blog business logic: authoring, status transitions and listings."""
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import Clock
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.blog import Blog, BlogTag
from app.models.engagement import Follow, Like
from app.models.enums import BlogStatus, NotificationType
from app.models.tag import Tag
from app.models.user import User
from app.schemas.blog import BlogCreate, BlogResponse, BlogUpdate, TagSummary
from app.schemas.pagination import Page, PageParams
from app.schemas.user import UserSummary
from app.services import category_service, counters, tag_service
from app.services.common import check_version, ensure_slug_free, flush, unique_slug
from app.services.notification_service import create_notification
from app.services.pagination import paginate

logger = logging.getLogger(__name__)

BLOG_SORTS = {
    "created_at": Blog.created_at,
    "published_at": Blog.published_at,
    "title": Blog.title,
    "views_count": Blog.views_count,
    "likes_count": Blog.likes_count,
    "comments_count": Blog.comments_count,
}

TRENDING_SCORE = Blog.likes_count * 0.4 + Blog.comments_count * 0.4 + Blog.views_count * 0.2


def blog_to_response(blog: Blog, tags: Iterable[Tag] = (), is_liked: bool = False) -> BlogResponse:
    """Build API response from Blog ORM object (author must be loaded)."""
    return BlogResponse(
        id=blog.id,
        title=blog.title,
        slug=blog.slug,
        summary=blog.effective_summary,
        content=blog.content,
        featured_image_url=blog.featured_image_url,
        status=blog.status,
        is_featured=blog.is_featured,
        is_comments_enabled=blog.is_comments_enabled,
        views_count=blog.views_count,
        likes_count=blog.likes_count,
        comments_count=blog.comments_count,
        reading_time_minutes=blog.reading_time_minutes,
        published_at=blog.published_at,
        scheduled_at=blog.scheduled_at,
        meta_title=blog.effective_meta_title,
        meta_description=blog.effective_meta_description,
        category_id=blog.category_id,
        author=UserSummary.model_validate(blog.author) if blog.author else None,
        tags=[TagSummary.model_validate(t) for t in tags],
        is_liked=is_liked,
        version=blog.version,
        created_at=blog.created_at,
        updated_at=blog.updated_at,
    )


async def get_user_liked_blog_ids(db: AsyncSession, user_id: UUID, blog_ids: list[UUID]) -> set[UUID]:
    """Return set of blog IDs that the user has liked."""
    if not blog_ids:
        return set()
    result = await db.execute(select(Like.blog_id).where(Like.user_id == user_id, Like.blog_id.in_(blog_ids)))
    return set(row[0] for row in result.all() if row[0])


async def to_responses(db: AsyncSession, blogs: list[Blog], viewer_id: UUID | None = None) -> list[BlogResponse]:
    ids = [b.id for b in blogs]
    tags = await tag_service.get_tags_for_blogs(db, ids)
    liked = await get_user_liked_blog_ids(db, viewer_id, ids) if viewer_id else set()
    return [blog_to_response(b, tags.get(b.id, []), b.id in liked) for b in blogs]


async def page_to_responses(db: AsyncSession, page: Page, viewer_id: UUID | None = None) -> Page[BlogResponse]:
    return Page[BlogResponse](
        items=await to_responses(db, page.items, viewer_id),
        total=page.total,
        page=page.page,
        size=page.size,
    )


def _with_author(q: Select) -> Select:
    return q.options(selectinload(Blog.author))


def published_blogs() -> Select:
    return _with_author(select(Blog).where(Blog.status == BlogStatus.PUBLISHED))


def _can_manage(blog: Blog, user: User | None) -> bool:
    return user is not None and (blog.author_id == user.id or user.can_moderate_content)


def _require_manager(blog: Blog, user: User) -> None:
    if not _can_manage(blog, user):
        raise PermissionDeniedError("Only the author or a moderator can change this blog")


async def _load(db: AsyncSession, q: Select) -> Blog | None:
    return (await db.execute(_with_author(q))).scalar_one_or_none()


async def reload_blog(db: AsyncSession, blog_id: UUID) -> Blog:
    """Re-read a blog after counter updates expired its attributes."""
    q = _with_author(select(Blog).where(Blog.id == blog_id)).execution_options(populate_existing=True)
    return (await db.execute(q)).scalar_one()


async def get_blog(db: AsyncSession, blog_id: UUID, viewer: User | None = None, include_hidden: bool = False) -> Blog:
    """Fetch a blog. Unpublished blogs are only visible to their author and moderators."""
    blog = await _load(db, select(Blog).where(Blog.id == blog_id))
    if blog is None or not (include_hidden or blog.current_status.is_publicly_visible or _can_manage(blog, viewer)):
        raise NotFoundError("Blog not found")
    return blog


async def get_blog_by_slug(db: AsyncSession, slug: str, viewer: User | None = None) -> Blog:
    blog = await _load(db, select(Blog).where(Blog.slug == slug))
    if blog is None or not (blog.current_status.is_publicly_visible or _can_manage(blog, viewer)):
        raise NotFoundError("Blog not found")
    return blog


async def create_blog(db: AsyncSession, author: User, data: BlogCreate, principal: str | None = None) -> Blog:
    """Create a draft and bump the author, category and tag counters in the same transaction."""
    if data.category_id is not None:
        await category_service.get_category(db, data.category_id)
    if data.slug:
        slug = await ensure_slug_free(db, Blog, data.slug)
    else:
        slug = await unique_slug(db, Blog, data.title, max_length=250)
    blog = Blog(
        author_id=author.id,
        category_id=data.category_id,
        title=data.title,
        slug=slug,
        summary=data.summary,
        content=data.content,
        featured_image_url=data.featured_image_url,
        is_comments_enabled=data.is_comments_enabled,
        meta_title=data.meta_title,
        meta_description=data.meta_description,
        status=BlogStatus.DRAFT,
    )
    blog.stamp(principal)
    db.add(blog)
    await flush(db, f"Blog slug '{slug}' already exists")
    await counters.increment_user_blogs(db, author.id)
    if blog.category_id is not None:
        await category_service.increment_blog_count(db, blog.category_id)
    if data.tags:
        tags = await tag_service.resolve_tags(db, data.tags, principal)
        await tag_service.set_blog_tags(db, blog.id, [t.id for t in tags])
    logger.info("Blog %s created by %s", blog.id, author.id)
    return await reload_blog(db, blog.id)


async def update_blog(
    db: AsyncSession,
    blog_id: UUID,
    actor: User,
    data: BlogUpdate,
    principal: str | None = None,
) -> Blog:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    check_version(blog, data.version)
    if not blog.current_status.can_be_edited and not actor.can_moderate_content:
        raise ValidationError(f"A {blog.current_status.value.lower()} blog must be moved back to draft before editing")
    fields = data.model_dump(exclude_unset=True, exclude={"version", "tags", "category_id"})
    for field, value in fields.items():
        setattr(blog, field, value)
    if "category_id" in data.model_fields_set and data.category_id != blog.category_id:
        if data.category_id is not None:
            await category_service.get_category(db, data.category_id)
        if blog.category_id is not None:
            await category_service.decrement_blog_count(db, blog.category_id)
        if data.category_id is not None:
            await category_service.increment_blog_count(db, data.category_id)
        blog.category_id = data.category_id
    if data.tags is not None:
        tags = await tag_service.resolve_tags(db, data.tags, principal)
        await tag_service.set_blog_tags(db, blog.id, [t.id for t in tags])
    blog.stamp(principal)
    await flush(db)
    return blog


async def delete_blog(db: AsyncSession, blog_id: UUID, actor: User) -> None:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    tag_ids = await tag_service.get_blog_tag_ids(db, blog.id)
    await counters.decrement_tag_usage(db, tag_ids)
    if blog.category_id is not None:
        await category_service.decrement_blog_count(db, blog.category_id)
    await counters.decrement_user_blogs(db, blog.author_id)
    await db.delete(blog)
    await flush(db)
    logger.info("Blog %s deleted by %s", blog_id, actor.id)


# Status transitions

async def publish_blog(db: AsyncSession, blog_id: UUID, actor: User, clock: Clock) -> Blog:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    blog.publish(clock.now())
    blog.stamp(str(actor.id))
    await flush(db)
    await create_notification(
        db,
        recipient_id=blog.author_id,
        actor_id=actor.id,
        notification_type=NotificationType.BLOG_PUBLISHED,
        related_blog_id=blog.id,
        action_url=f"/blogs/{blog.slug}",
    )
    return blog


async def schedule_blog(db: AsyncSession, blog_id: UUID, actor: User, at: datetime, clock: Clock) -> Blog:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    if at.tzinfo is not None:
        at = at.astimezone(timezone.utc).replace(tzinfo=None)
    blog.schedule(at, clock.now())
    blog.stamp(str(actor.id))
    await flush(db)
    return blog


async def archive_blog(db: AsyncSession, blog_id: UUID, actor: User) -> Blog:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    blog.archive()
    blog.stamp(str(actor.id))
    await flush(db)
    return blog


async def draft_blog(db: AsyncSession, blog_id: UUID, actor: User) -> Blog:
    blog = await get_blog(db, blog_id, actor)
    _require_manager(blog, actor)
    blog.make_draft()
    blog.stamp(str(actor.id))
    await flush(db)
    return blog


async def set_featured(db: AsyncSession, blog_id: UUID, actor: User, featured: bool = True) -> Blog:
    if not actor.can_moderate_content:
        raise PermissionDeniedError("Only moderators can feature blogs")
    blog = await get_blog(db, blog_id, actor)
    if featured and not blog.is_published:
        raise ValidationError("Only published blogs can be featured")
    was_featured = blog.is_featured
    blog.is_featured = featured
    blog.stamp(str(actor.id))
    await flush(db)
    if featured and not was_featured:
        await create_notification(
            db,
            recipient_id=blog.author_id,
            actor_id=actor.id,
            notification_type=NotificationType.BLOG_FEATURED,
            related_blog_id=blog.id,
            action_url=f"/blogs/{blog.slug}",
        )
    return blog


async def publish_scheduled_blogs(db: AsyncSession, clock: Clock) -> list[UUID]:
    """Publish every SCHEDULED blog whose time has come.

    A single predicated UPDATE: a sweep running concurrently with another
    only sees rows that are still SCHEDULED, so each blog transitions once.
    """
    now = clock.now()
    stmt = (
        update(Blog)
        .where(Blog.status == BlogStatus.SCHEDULED, Blog.scheduled_at <= now)
        .values(
            status=BlogStatus.PUBLISHED,
            published_at=func.coalesce(Blog.published_at, now),
            scheduled_at=None,
            version=Blog.version + 1,
            updated_at=now,
        )
        .returning(Blog.id, Blog.author_id, Blog.slug)
        .execution_options(synchronize_session=False)
    )
    rows = (await db.execute(stmt)).all()
    for blog_id, author_id, slug in rows:
        await create_notification(
            db,
            recipient_id=author_id,
            notification_type=NotificationType.BLOG_PUBLISHED,
            related_blog_id=blog_id,
            action_url=f"/blogs/{slug}",
        )
    if rows:
        logger.info("Published %d scheduled blogs", len(rows))
    return [row[0] for row in rows]


async def record_view(db: AsyncSession, blog_id: UUID) -> Blog:
    blog = await get_blog(db, blog_id)
    await counters.increment_blog_views(db, blog.id)
    return await reload_blog(db, blog.id)


# Listings

async def list_published(
    db: AsyncSession,
    params: PageParams,
    category_id: UUID | None = None,
    author_id: UUID | None = None,
) -> Page:
    q = published_blogs()
    if category_id is not None:
        q = q.where(Blog.category_id == category_id)
    if author_id is not None:
        q = q.where(Blog.author_id == author_id)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_blogs_by_author(db: AsyncSession, author_id: UUID, params: PageParams, viewer: User | None = None) -> Page:
    """All of an author's blogs for the author or a moderator, published ones for everyone else."""
    q = _with_author(select(Blog).where(Blog.author_id == author_id))
    if viewer is None or (viewer.id != author_id and not viewer.can_moderate_content):
        q = q.where(Blog.status == BlogStatus.PUBLISHED)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.created_at.desc())


async def get_drafts_by_author(db: AsyncSession, author_id: UUID, params: PageParams) -> Page:
    q = _with_author(select(Blog).where(Blog.author_id == author_id, Blog.status == BlogStatus.DRAFT))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.updated_at.desc())


async def get_trending_blogs(
    db: AsyncSession,
    params: PageParams,
    clock: Clock,
    days: int | None = None,
) -> Page:
    """Weighted engagement score over blogs published within the window."""
    since = clock.days_ago(days or settings.TRENDING_WINDOW_DAYS)
    q = published_blogs().where(Blog.published_at >= since)
    return await paginate(db, q, params, BLOG_SORTS, default_order=[TRENDING_SCORE.desc(), Blog.published_at.desc()])


async def get_popular_blogs(db: AsyncSession, params: PageParams) -> Page:
    return await paginate(
        db, published_blogs(), params, BLOG_SORTS, default_order=[Blog.likes_count.desc(), Blog.published_at.desc()]
    )


async def get_most_viewed_blogs(db: AsyncSession, params: PageParams) -> Page:
    return await paginate(
        db, published_blogs(), params, BLOG_SORTS, default_order=[Blog.views_count.desc(), Blog.published_at.desc()]
    )


async def get_most_commented_blogs(db: AsyncSession, params: PageParams) -> Page:
    return await paginate(
        db,
        published_blogs(),
        params,
        BLOG_SORTS,
        default_order=[Blog.comments_count.desc(), Blog.published_at.desc()],
    )


async def get_featured_blogs(db: AsyncSession, params: PageParams) -> Page:
    q = published_blogs().where(Blog.is_featured.is_(True))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_recent_blogs(db: AsyncSession, params: PageParams, since: datetime) -> Page:
    q = published_blogs().where(Blog.published_at >= since)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_blogs_published_today(db: AsyncSession, params: PageParams, clock: Clock) -> Page:
    start = clock.start_of_day()
    q = published_blogs().where(Blog.published_at >= start, Blog.published_at < start + timedelta(days=1))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def find_by_tag(db: AsyncSession, slug: str, params: PageParams) -> Page:
    tag = await tag_service.get_tag_by_slug(db, slug)
    q = published_blogs().where(Blog.id.in_(select(BlogTag.blog_id).where(BlogTag.tag_id == tag.id)))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def find_by_all_tags(db: AsyncSession, slugs: Iterable[str], params: PageParams) -> Page:
    """Published blogs carrying every one of the requested tags."""
    wanted = {s.strip().lower() for s in slugs if s and s.strip()}
    if not wanted:
        raise ValidationError("At least one tag is required")
    matching = (
        select(BlogTag.blog_id)
        .join(Tag, Tag.id == BlogTag.tag_id)
        .where(Tag.slug.in_(wanted))
        .group_by(BlogTag.blog_id)
        .having(func.count(func.distinct(Tag.slug)) == len(wanted))
    )
    q = published_blogs().where(Blog.id.in_(matching))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def find_by_category(
    db: AsyncSession,
    slug: str,
    params: PageParams,
    include_descendants: bool = False,
) -> Page:
    category = await category_service.get_category_by_slug(db, slug)
    if include_descendants:
        ids = await category_service.get_subtree_ids(db, category.id)
        q = published_blogs().where(Blog.category_id.in_(ids))
    else:
        q = published_blogs().where(Blog.category_id == category.id)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


def _matches(term: str):
    pattern = f"%{term.strip()}%"
    return or_(Blog.title.ilike(pattern), Blog.summary.ilike(pattern), Blog.content.ilike(pattern))


async def search_blogs(db: AsyncSession, term: str, params: PageParams) -> Page:
    """Case-insensitive substring search over title, summary and content."""
    if not term or not term.strip():
        raise ValidationError("Search term is required")
    q = published_blogs().where(_matches(term))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def advanced_search(
    db: AsyncSession,
    params: PageParams,
    term: str | None = None,
    category_id: UUID | None = None,
    author_id: UUID | None = None,
    tag: str | None = None,
) -> Page:
    q = published_blogs()
    if term and term.strip():
        q = q.where(_matches(term))
    if category_id is not None:
        q = q.where(Blog.category_id == category_id)
    if author_id is not None:
        q = q.where(Blog.author_id == author_id)
    if tag:
        q = q.where(
            Blog.id.in_(
                select(BlogTag.blog_id).join(Tag, Tag.id == BlogTag.tag_id).where(Tag.slug == tag.strip().lower())
            )
        )
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_feed_for_user(db: AsyncSession, user_id: UUID, params: PageParams) -> Page:
    """Published blogs from authors the user follows."""
    following = select(Follow.following_id).where(Follow.follower_id == user_id)
    q = published_blogs().where(Blog.author_id.in_(following))
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_recommended_blogs(db: AsyncSession, user_id: UUID, params: PageParams) -> Page:
    """Blogs in categories the user has liked, or by authors they follow; never their own."""
    liked_categories = (
        select(Blog.category_id)
        .join(Like, Like.blog_id == Blog.id)
        .where(Like.user_id == user_id, Blog.category_id.is_not(None))
        .distinct()
    )
    following = select(Follow.following_id).where(Follow.follower_id == user_id)
    q = published_blogs().where(
        or_(Blog.category_id.in_(liked_categories), Blog.author_id.in_(following)),
        Blog.author_id != user_id,
    )
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())


async def get_similar_blogs(db: AsyncSession, blog_id: UUID, params: PageParams) -> Page:
    """Other published blogs in the same category."""
    blog = await get_blog(db, blog_id)
    if blog.category_id is None:
        return Page(items=[], total=0, page=params.page, size=params.size)
    q = published_blogs().where(Blog.category_id == blog.category_id, Blog.id != blog.id)
    return await paginate(db, q, params, BLOG_SORTS, default_order=Blog.published_at.desc())

