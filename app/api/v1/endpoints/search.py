from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.user import User
from app.schemas.blog import BlogAdvancedSearch, BlogResponse
from app.schemas.comment import CommentResponse
from app.schemas.pagination import Page, PageParams
from app.schemas.user import UserPublic
from app.services import blog_service, comment_service, user_service
from app.services.auth_service import user_to_public

router = APIRouter(prefix="/search", tags=["search"])


class SearchResults(BaseModel):
    users: list[UserPublic]
    blogs: list[BlogResponse]
    comments: list[CommentResponse]


@router.get("", response_model=SearchResults)
async def search(
    q: str,
    limit: int = Query(10, ge=1, le=50),
    current_user: User | None = Depends(deps.get_current_user_optional),
    db: AsyncSession = Depends(deps.get_db),
):
    """
    Search users, published blogs and visible comments in one call.
    """
    query = q.strip()
    if not query:
        return SearchResults(users=[], blogs=[], comments=[])
    viewer_id = current_user.id if current_user else None
    params = PageParams(page=0, size=limit)

    users = await user_service.search_users(db, query, params)
    blogs = await blog_service.search_blogs(db, query, params)
    comments = await comment_service.search_comments(db, query, params)

    return SearchResults(
        users=[user_to_public(u) for u in users.items],
        blogs=await blog_service.to_responses(db, blogs.items, viewer_id),
        comments=await comment_service.to_responses(db, comments.items, viewer_id),
    )


@router.get("/blogs", response_model=Page[BlogResponse])
async def search_blogs(
    q: str = Query(..., min_length=1),
    params: PageParams = Depends(deps.get_page_params),
    current_user: User | None = Depends(deps.get_current_user_optional),
    db: AsyncSession = Depends(deps.get_db),
):
    page = await blog_service.search_blogs(db, q, params)
    return await blog_service.page_to_responses(db, page, current_user.id if current_user else None)


@router.get("/blogs/advanced", response_model=Page[BlogResponse])
async def advanced_blog_search(
    criteria: BlogAdvancedSearch = Depends(),
    params: PageParams = Depends(deps.get_page_params),
    current_user: User | None = Depends(deps.get_current_user_optional),
    db: AsyncSession = Depends(deps.get_db),
):
    """Filter published blogs by any mix of text, category, author and tag."""
    page = await blog_service.advanced_search(
        db,
        params,
        term=criteria.q,
        category_id=criteria.category_id,
        author_id=criteria.author_id,
        tag=criteria.tag,
    )
    return await blog_service.page_to_responses(db, page, current_user.id if current_user else None)


@router.get("/comments", response_model=Page[CommentResponse])
async def search_comments(
    q: str = Query(..., min_length=1),
    params: PageParams = Depends(deps.get_page_params),
    current_user: User | None = Depends(deps.get_current_user_optional),
    db: AsyncSession = Depends(deps.get_db),
):
    page = await comment_service.search_comments(db, q, params)
    return await comment_service.page_to_responses(db, page, current_user.id if current_user else None)
