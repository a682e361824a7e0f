"""Category hierarchy API. Reads are public, writes need a moderator."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_moderator, get_db
from app.models.user import User
from app.schemas.category import (
    CategoryCreate,
    CategoryMove,
    CategoryResponse,
    CategoryStats,
    CategoryTreeNode,
    CategoryUpdate,
)
from app.services import category_service

router = APIRouter(prefix="/categories", tags=["categories"])


async def _fresh(db: AsyncSession, category_id: UUID) -> CategoryResponse:
    category = await category_service.get_category(db, category_id)
    await db.refresh(category)
    return CategoryResponse.model_validate(category)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.list_categories(db, active_only=active_only)


@router.get("/tree", response_model=list[CategoryTreeNode])
async def category_tree(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.get_category_tree(db, active_only=active_only)


@router.get("/roots", response_model=list[CategoryResponse])
async def root_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.get_root_categories(db)


@router.get("/slug/{slug}", response_model=CategoryResponse)
async def category_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return await category_service.get_category_by_slug(db, slug)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    category = await category_service.create_category(db, data, principal=str(current_user.id))
    await db.commit()
    return await _fresh(db, category.id)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: UUID, db: AsyncSession = Depends(get_db)):
    return await category_service.get_category(db, category_id)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await category_service.update_category(db, category_id, data, principal=str(current_user.id))
    await db.commit()
    return await _fresh(db, category_id)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await category_service.delete_category(db, category_id)
    await db.commit()


@router.get("/{category_id}/children", response_model=list[CategoryResponse])
async def category_children(category_id: UUID, db: AsyncSession = Depends(get_db)):
    await category_service.get_category(db, category_id)
    return await category_service.get_children(db, category_id)


@router.get("/{category_id}/ancestors", response_model=list[CategoryResponse])
async def category_ancestors(category_id: UUID, db: AsyncSession = Depends(get_db)):
    return await category_service.get_ancestors(db, category_id)


@router.get("/{category_id}/descendants", response_model=list[CategoryResponse])
async def category_descendants(category_id: UUID, db: AsyncSession = Depends(get_db)):
    return await category_service.get_all_descendants(db, category_id)


@router.get("/{category_id}/stats", response_model=CategoryStats)
async def category_stats(category_id: UUID, db: AsyncSession = Depends(get_db)):
    """Depth, breadcrumb path, inherited colour and subtree blog total."""
    return await category_service.get_category_stats(db, category_id)


@router.post("/{category_id}/move", response_model=CategoryResponse)
async def move_category(
    category_id: UUID,
    data: CategoryMove,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await category_service.move_category(db, category_id, data.parent_id, principal=str(current_user.id))
    await db.commit()
    return await _fresh(db, category_id)


@router.put("/{category_id}/children/{child_id}", response_model=CategoryResponse)
async def add_child_category(
    category_id: UUID,
    child_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await category_service.add_child(db, category_id, child_id, principal=str(current_user.id))
    await db.commit()
    return await _fresh(db, child_id)


@router.delete("/{category_id}/children/{child_id}", response_model=CategoryResponse)
async def remove_child_category(
    category_id: UUID,
    child_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await category_service.remove_child(db, category_id, child_id, principal=str(current_user.id))
    await db.commit()
    return await _fresh(db, child_id)
