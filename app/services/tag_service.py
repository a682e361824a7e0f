"""Tag business logic and blog tagging."""
from collections.abc import Iterable
from uuid import UUID

from slugify import slugify
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.models.blog import BlogTag
from app.models.tag import POPULAR_THRESHOLD, Tag
from app.schemas.pagination import Page, PageParams
from app.schemas.tag import TagCreate, TagUpdate
from app.services import counters
from app.services.common import check_version, ensure_slug_free, flush, get_or_404, unique_slug
from app.services.pagination import paginate

TAG_SORTS = {"name": Tag.name, "usage_count": Tag.usage_count, "created_at": Tag.created_at}


async def get_tag(db: AsyncSession, tag_id: UUID) -> Tag:
    return await get_or_404(db, Tag, tag_id, "Tag")


async def get_tag_by_slug(db: AsyncSession, slug: str) -> Tag:
    tag = (await db.execute(select(Tag).where(Tag.slug == slug))).scalar_one_or_none()
    if tag is None:
        raise NotFoundError(f"Tag '{slug}' not found")
    return tag


async def list_tags(db: AsyncSession, params: PageParams, active_only: bool = True) -> Page:
    q = select(Tag)
    if active_only:
        q = q.where(Tag.is_active.is_(True))
    return await paginate(db, q, params, TAG_SORTS, default_order=Tag.name.asc())


async def get_popular_tags(db: AsyncSession, params: PageParams) -> Page:
    """Active tags used on more than the popularity threshold of blogs."""
    q = select(Tag).where(Tag.is_active.is_(True), Tag.usage_count > POPULAR_THRESHOLD)
    return await paginate(db, q, params, TAG_SORTS, default_order=Tag.usage_count.desc())


async def create_tag(db: AsyncSession, data: TagCreate, principal: str | None = None) -> Tag:
    if data.slug:
        slug = await ensure_slug_free(db, Tag, data.slug)
    else:
        slug = await unique_slug(db, Tag, data.name, max_length=60)
    tag = Tag(name=data.name, slug=slug, description=data.description, color=data.color)
    tag.stamp(principal)
    db.add(tag)
    await flush(db, f"Tag slug '{slug}' already exists")
    return tag


async def update_tag(db: AsyncSession, tag_id: UUID, data: TagUpdate, principal: str | None = None) -> Tag:
    tag = await get_tag(db, tag_id)
    check_version(tag, data.version)
    for field, value in data.model_dump(exclude_unset=True, exclude={"version"}).items():
        setattr(tag, field, value)
    tag.stamp(principal)
    await flush(db)
    return tag


async def delete_tag(db: AsyncSession, tag_id: UUID) -> None:
    tag = await get_tag(db, tag_id)
    if not tag.can_be_deleted:
        raise ConflictError(f"Tag '{tag.slug}' is still used by {tag.usage_count} blogs")
    await db.delete(tag)
    await flush(db)


async def resolve_tags(db: AsyncSession, names: Iterable[str], principal: str | None = None) -> list[Tag]:
    """Existing tags matched by slug; unknown names are created."""
    wanted: dict[str, str] = {}
    for name in names:
        slug = slugify(name or "", max_length=60)
        if slug and slug not in wanted:
            wanted[slug] = name.strip()
    if not wanted:
        return []
    found = {t.slug: t for t in (await db.execute(select(Tag).where(Tag.slug.in_(wanted)))).scalars()}
    tags = []
    for slug, name in wanted.items():
        tag = found.get(slug)
        if tag is None:
            tag = Tag(name=name[:50], slug=slug)
            tag.stamp(principal)
            db.add(tag)
        tags.append(tag)
    await flush(db, "Tag already exists")
    return tags


async def get_blog_tag_ids(db: AsyncSession, blog_id: UUID) -> set[UUID]:
    result = await db.execute(select(BlogTag.tag_id).where(BlogTag.blog_id == blog_id))
    return set(result.scalars().all())


async def set_blog_tags(db: AsyncSession, blog_id: UUID, tag_ids: Iterable[UUID]) -> None:
    """Replace a blog's tags, moving each tag's usage count with its join row."""
    wanted = set(tag_ids)
    current = await get_blog_tag_ids(db, blog_id)
    added = wanted - current
    removed = current - wanted
    if removed:
        await db.execute(delete(BlogTag).where(BlogTag.blog_id == blog_id, BlogTag.tag_id.in_(removed)))
        await counters.decrement_tag_usage(db, removed)
    if added:
        db.add_all([BlogTag(blog_id=blog_id, tag_id=tag_id) for tag_id in added])
        await flush(db, "Blog is already tagged")
        await counters.increment_tag_usage(db, added)


async def get_tags_for_blogs(db: AsyncSession, blog_ids: list[UUID]) -> dict[UUID, list[Tag]]:
    if not blog_ids:
        return {}
    result = await db.execute(
        select(BlogTag.blog_id, Tag).join(Tag, Tag.id == BlogTag.tag_id).where(BlogTag.blog_id.in_(blog_ids))
    )
    tags: dict[UUID, list[Tag]] = {blog_id: [] for blog_id in blog_ids}
    for blog_id, tag in result.all():
        tags[blog_id].append(tag)
    for bucket in tags.values():
        bucket.sort(key=lambda t: t.name.lower())
    return tags
