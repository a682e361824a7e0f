"""Blog CRUD, status transitions, likes and listings."""
from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Clock, get_clock, get_current_user, get_current_user_optional, get_db, get_page_params
from app.models.blog import Blog
from app.models.engagement import BlogTarget
from app.models.user import User
from app.schemas.blog import BlogCreate, BlogFeature, BlogResponse, BlogSchedule, BlogUpdate
from app.schemas.comment import CommentCreate, CommentResponse
from app.schemas.pagination import Page, PageParams
from app.schemas.user import UserPublic, UserSummary
from app.services import blog_service, comment_service, engagement_service
from app.services.auth_service import user_to_public

router = APIRouter(prefix="/blogs", tags=["blogs"])


def _viewer_id(user: User | None) -> UUID | None:
    return user.id if user else None


async def _respond(db: AsyncSession, blog: Blog, viewer: User | None) -> BlogResponse:
    blog = await blog_service.reload_blog(db, blog.id)
    return (await blog_service.to_responses(db, [blog], _viewer_id(viewer)))[0]


@router.post("", response_model=BlogResponse, status_code=status.HTTP_201_CREATED)
async def create_blog(
    data: BlogCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.create_blog(db, current_user, data, principal=str(current_user.id))
    await db.commit()
    return await _respond(db, blog, current_user)


@router.get("", response_model=Page[BlogResponse])
async def list_blogs(
    category_id: UUID | None = None,
    author_id: UUID | None = None,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.list_published(db, params, category_id=category_id, author_id=author_id)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/trending", response_model=Page[BlogResponse])
async def trending_blogs(
    days: int | None = Query(None, ge=1, le=365),
    params: PageParams = Depends(get_page_params),
    clock: Clock = Depends(get_clock),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_trending_blogs(db, params, clock, days)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/popular", response_model=Page[BlogResponse])
async def popular_blogs(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_popular_blogs(db, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/most-viewed", response_model=Page[BlogResponse])
async def most_viewed_blogs(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_most_viewed_blogs(db, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/most-commented", response_model=Page[BlogResponse])
async def most_commented_blogs(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_most_commented_blogs(db, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/featured", response_model=Page[BlogResponse])
async def featured_blogs(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_featured_blogs(db, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/today", response_model=Page[BlogResponse])
async def blogs_published_today(
    params: PageParams = Depends(get_page_params),
    clock: Clock = Depends(get_clock),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_blogs_published_today(db, params, clock)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/recent", response_model=Page[BlogResponse])
async def recent_blogs(
    days: int = Query(7, ge=1, le=365),
    params: PageParams = Depends(get_page_params),
    clock: Clock = Depends(get_clock),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_recent_blogs(db, params, clock.now() - timedelta(days=days))
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/tagged", response_model=Page[BlogResponse])
async def blogs_with_all_tags(
    tags: list[str] = Query(..., min_length=1),
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    """Blogs carrying every tag given in ``tags``."""
    page = await blog_service.find_by_all_tags(db, tags, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/tag/{slug}", response_model=Page[BlogResponse])
async def blogs_by_tag(
    slug: str,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.find_by_tag(db, slug, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/category/{slug}", response_model=Page[BlogResponse])
async def blogs_by_category(
    slug: str,
    include_descendants: bool = False,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.find_by_category(db, slug, params, include_descendants=include_descendants)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/slug/{slug}", response_model=BlogResponse)
async def get_blog_by_slug(
    slug: str,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.get_blog_by_slug(db, slug, current_user)
    return (await blog_service.to_responses(db, [blog], _viewer_id(current_user)))[0]


@router.get("/{blog_id}", response_model=BlogResponse)
async def get_blog(
    blog_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.get_blog(db, blog_id, current_user)
    return (await blog_service.to_responses(db, [blog], _viewer_id(current_user)))[0]


@router.patch("/{blog_id}", response_model=BlogResponse)
async def update_blog(
    blog_id: UUID,
    data: BlogUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.update_blog(db, blog_id, current_user, data, principal=str(current_user.id))
    await db.commit()
    return await _respond(db, blog, current_user)


@router.delete("/{blog_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blog(
    blog_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await blog_service.delete_blog(db, blog_id, current_user)
    await db.commit()
    return None


@router.post("/{blog_id}/publish", response_model=BlogResponse)
async def publish_blog(
    blog_id: UUID,
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.publish_blog(db, blog_id, current_user, clock)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/schedule", response_model=BlogResponse)
async def schedule_blog(
    blog_id: UUID,
    data: BlogSchedule,
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.schedule_blog(db, blog_id, current_user, data.scheduled_at, clock)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/archive", response_model=BlogResponse)
async def archive_blog(
    blog_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.archive_blog(db, blog_id, current_user)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/draft", response_model=BlogResponse)
async def draft_blog(
    blog_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.draft_blog(db, blog_id, current_user)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/feature", response_model=BlogResponse)
async def feature_blog(
    blog_id: UUID,
    data: BlogFeature,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.set_featured(db, blog_id, current_user, data.is_featured)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/view", response_model=BlogResponse)
async def record_view(
    blog_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    blog = await blog_service.record_view(db, blog_id)
    await db.commit()
    return await _respond(db, blog, current_user)


@router.post("/{blog_id}/like", response_model=BlogResponse, status_code=status.HTTP_201_CREATED)
async def like_blog(
    blog_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.like(db, current_user, BlogTarget(blog_id))
    await db.commit()
    return await _respond(db, await blog_service.get_blog(db, blog_id), current_user)


@router.delete("/{blog_id}/like", response_model=BlogResponse)
async def unlike_blog(
    blog_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.unlike(db, current_user, BlogTarget(blog_id))
    await db.commit()
    return await _respond(db, await blog_service.get_blog(db, blog_id, current_user), current_user)


@router.get("/{blog_id}/likers", response_model=Page[UserPublic])
async def blog_likers(
    blog_id: UUID,
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
):
    await blog_service.get_blog(db, blog_id)
    page = await engagement_service.get_likers(db, BlogTarget(blog_id), params)
    return Page[UserPublic](
        items=[user_to_public(u) for u in page.items], total=page.total, page=page.page, size=page.size
    )


@router.get("/{blog_id}/similar", response_model=Page[BlogResponse])
async def similar_blogs(
    blog_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_similar_blogs(db, blog_id, params)
    return await blog_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/{blog_id}/comments", response_model=Page[CommentResponse])
async def blog_comments(
    blog_id: UUID,
    top_level_only: bool = True,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    await blog_service.get_blog(db, blog_id, current_user)
    if top_level_only:
        page = await comment_service.get_top_level_comments(db, blog_id, params)
    else:
        page = await comment_service.get_visible_comments(db, blog_id, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.post("/{blog_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    blog_id: UUID,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, blog_id, current_user, data.content, data.parent_id)
    await db.commit()
    return comment_service.comment_to_response(comment)


@router.get("/{blog_id}/participants", response_model=list[UserSummary])
async def conversation_participants(
    blog_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    await blog_service.get_blog(db, blog_id, current_user)
    users = await comment_service.get_conversation_participants(db, blog_id, _viewer_id(current_user))
    return [UserSummary.model_validate(u) for u in users]
