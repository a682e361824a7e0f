"""Tag API. Anyone can browse; moderators curate."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_moderator, get_db, get_page_params
from app.models.user import User
from app.schemas.pagination import Page, PageParams
from app.schemas.tag import TagCreate, TagResponse, TagUpdate
from app.services import tag_service

router = APIRouter(prefix="/tags", tags=["tags"])


def _page(page: Page) -> Page[TagResponse]:
    return Page[TagResponse](
        items=[TagResponse.model_validate(t) for t in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
    )


@router.get("", response_model=Page[TagResponse])
async def list_tags(
    active_only: bool = Query(True),
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
):
    return _page(await tag_service.list_tags(db, params, active_only=active_only))


@router.get("/popular", response_model=Page[TagResponse])
async def popular_tags(
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
):
    return _page(await tag_service.get_popular_tags(db, params))


@router.get("/slug/{slug}", response_model=TagResponse)
async def tag_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return await tag_service.get_tag_by_slug(db, slug)


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    tag = await tag_service.create_tag(db, data, principal=str(current_user.id))
    await db.commit()
    await db.refresh(tag)
    return tag


@router.get("/{tag_id}", response_model=TagResponse)
async def get_tag(tag_id: UUID, db: AsyncSession = Depends(get_db)):
    return await tag_service.get_tag(db, tag_id)


@router.patch("/{tag_id}", response_model=TagResponse)
async def update_tag(
    tag_id: UUID,
    data: TagUpdate,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    tag = await tag_service.update_tag(db, tag_id, data, principal=str(current_user.id))
    await db.commit()
    await db.refresh(tag)
    return tag


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await tag_service.delete_tag(db, tag_id)
    await db.commit()
