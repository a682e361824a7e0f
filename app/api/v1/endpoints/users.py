"""User profile, follow and personal feed endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_current_user, get_current_user_optional, get_db, get_page_params
from app.models.user import User
from app.schemas.blog import BlogResponse
from app.schemas.pagination import Page, PageParams
from app.schemas.user import ChangePasswordRequest, RoleUpdate, UserPublic, UserResponse, UserUpdate
from app.services import blog_service, engagement_service, user_service
from app.services.auth_service import user_to_public, user_to_response

router = APIRouter(prefix="/users", tags=["users"])


async def _public_page(db: AsyncSession, page: Page, viewer: User | None) -> Page[UserPublic]:
    following = set()
    if viewer is not None:
        following = await engagement_service.get_following_ids(db, viewer.id, [u.id for u in page.items])
    return Page[UserPublic](
        items=[user_to_public(u, u.id in following) for u in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return user_to_response(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(db, current_user, data)
    await db.commit()
    return user_to_response(user)


@router.post("/me/change-password", response_model=dict)
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the current user's password."""
    await user_service.change_password(db, current_user, data.current_password, data.new_password)
    await db.commit()
    return {"success": True, "message": "Password changed successfully"}


@router.get("/me/feed", response_model=Page[BlogResponse])
async def my_feed(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Published blogs from authors the current user follows."""
    page = await blog_service.get_feed_for_user(db, current_user.id, params)
    return await blog_service.page_to_responses(db, page, current_user.id)


@router.get("/me/recommended", response_model=Page[BlogResponse])
async def my_recommendations(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_recommended_blogs(db, current_user.id, params)
    return await blog_service.page_to_responses(db, page, current_user.id)


@router.get("/me/drafts", response_model=Page[BlogResponse])
async def my_drafts(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await blog_service.get_drafts_by_author(db, current_user.id, params)
    return await blog_service.page_to_responses(db, page, current_user.id)


@router.get("/me/liked-blogs", response_model=Page[BlogResponse])
async def my_liked_blogs(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await engagement_service.get_liked_blogs(db, current_user.id, params)
    return await blog_service.page_to_responses(db, page, current_user.id)


@router.get("/search", response_model=Page[UserPublic])
async def search_users(
    q: str = Query(..., min_length=1),
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await user_service.search_users(db, q, params)
    return await _public_page(db, page, current_user)


@router.get("/username/{username}", response_model=UserPublic)
async def get_user_by_username(
    username: str,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_username(db, username)
    is_following = current_user is not None and await engagement_service.is_following(db, current_user.id, user.id)
    return user_to_public(user, is_following)


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user(db, user_id)
    is_following = current_user is not None and await engagement_service.is_following(db, current_user.id, user.id)
    return user_to_public(user, is_following)


@router.get("/{user_id}/blogs", response_model=Page[BlogResponse])
async def get_user_blogs(
    user_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user(db, user_id)
    page = await blog_service.get_blogs_by_author(db, user_id, params, current_user)
    return await blog_service.page_to_responses(db, page, current_user.id if current_user else None)


@router.post("/{user_id}/follow", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def follow_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.follow(db, current_user, user_id)
    await db.commit()
    target = await user_service.get_user(db, user_id)
    await db.refresh(target)
    return user_to_public(target, is_following=True)


@router.delete("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.unfollow(db, current_user, user_id)
    await db.commit()
    return None


@router.get("/{user_id}/followers", response_model=Page[UserPublic])
async def get_followers(
    user_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await engagement_service.get_followers(db, user_id, params)
    return await _public_page(db, page, current_user)


@router.get("/{user_id}/following", response_model=Page[UserPublic])
async def get_following(
    user_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await engagement_service.get_following(db, user_id, params)
    return await _public_page(db, page, current_user)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.deactivate_user(db, user_id, current_user)
    await db.commit()
    return user_to_response(user)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: UUID,
    data: RoleUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.change_role(db, user_id, data.role, current_user)
    await db.commit()
    return user_to_response(user)
