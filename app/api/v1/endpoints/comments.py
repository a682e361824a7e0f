"""Comment threads, edits, likes and moderation."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    Clock,
    get_clock,
    get_current_moderator,
    get_current_user,
    get_current_user_optional,
    get_db,
    get_page_params,
)
from app.models.engagement import CommentTarget
from app.models.user import User
from app.schemas.comment import (
    BulkResult,
    CommentBulkAction,
    CommentCreate,
    CommentNode,
    CommentReject,
    CommentResponse,
    CommentUpdate,
)
from app.schemas.pagination import Page, PageParams
from app.services import comment_service, engagement_service

router = APIRouter(prefix="/comments", tags=["comments"])


def _viewer_id(user: User | None) -> UUID | None:
    return user.id if user else None


async def _respond(db: AsyncSession, comment_id: UUID, viewer: User | None) -> CommentResponse:
    comment = await comment_service.reload_comment(db, comment_id)
    return (await comment_service.to_responses(db, [comment], _viewer_id(viewer)))[0]


@router.get("/trending", response_model=Page[CommentResponse])
async def trending_comments(
    days: int | None = Query(None, ge=1, le=365),
    params: PageParams = Depends(get_page_params),
    clock: Clock = Depends(get_clock),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_trending_comments(db, params, clock, days)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/most-liked", response_model=Page[CommentResponse])
async def most_liked_comments(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_most_liked_comments(db, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/most-replied", response_model=Page[CommentResponse])
async def most_replied_comments(
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_most_replied_comments(db, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/search", response_model=Page[CommentResponse])
async def search_comments(
    q: str = Query(..., min_length=1),
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.search_comments(db, q, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.get("/by-author/{author_id}", response_model=Page[CommentResponse])
async def comments_by_author(
    author_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_comments_by_author(db, author_id, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


# Moderation queues

@router.get("/moderation/pending", response_model=Page[CommentResponse])
async def pending_comments(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_comments_awaiting_approval(db, params)
    return await comment_service.page_to_responses(db, page)


@router.get("/moderation/flagged", response_model=Page[CommentResponse])
async def flagged_comments(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_flagged_comments(db, params)
    return await comment_service.page_to_responses(db, page)


@router.get("/moderation/deleted", response_model=Page[CommentResponse])
async def deleted_comments(
    params: PageParams = Depends(get_page_params),
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.get_deleted_comments(db, params)
    return await comment_service.page_to_responses(db, page)


@router.post("/moderation/bulk-approve", response_model=BulkResult)
async def bulk_approve(
    data: CommentBulkAction,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    affected = await comment_service.bulk_approve_comments(db, data.ids, current_user)
    await db.commit()
    return BulkResult(affected=affected)


@router.post("/moderation/bulk-delete", response_model=BulkResult)
async def bulk_delete(
    data: CommentBulkAction,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    affected = await comment_service.bulk_delete_comments(db, data.ids, current_user)
    await db.commit()
    return BulkResult(affected=affected)


# Single comment

@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(
    comment_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await _respond(db, comment_id, current_user)


@router.patch("/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    comment_id: UUID,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.edit_comment(db, comment_id, current_user, data.content, data.reason, data.version)
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.delete("/{comment_id}", response_model=CommentResponse)
async def delete_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the comment stays in its thread as a placeholder."""
    await comment_service.soft_delete_comment(db, comment_id, current_user)
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.post("/{comment_id}/restore", response_model=CommentResponse)
async def restore_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.restore_comment(db, comment_id, current_user)
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.post("/{comment_id}/remove", response_model=BulkResult)
async def remove_reply(
    comment_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    """Permanently remove a reply together with its own replies."""
    removed = await comment_service.remove_reply(db, comment_id, current_user)
    await db.commit()
    return BulkResult(affected=removed)


@router.post("/{comment_id}/approve", response_model=CommentResponse)
async def approve_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.approve_comment(db, comment_id, current_user)
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.post("/{comment_id}/reject", response_model=CommentResponse)
async def reject_comment(
    comment_id: UUID,
    data: CommentReject,
    current_user: User = Depends(get_current_moderator),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.reject_comment(db, comment_id, current_user, data.reason)
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.get("/{comment_id}/thread", response_model=list[CommentResponse])
async def comment_thread(
    comment_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    """The comment and every visible reply beneath it, oldest first."""
    comments = await comment_service.get_comment_thread(db, comment_id)
    return await comment_service.to_responses(db, comments, _viewer_id(current_user))


@router.get("/{comment_id}/tree", response_model=CommentNode)
async def comment_tree(
    comment_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.get_comment_tree(db, comment_id, _viewer_id(current_user))


@router.get("/{comment_id}/replies", response_model=Page[CommentResponse])
async def comment_replies(
    comment_id: UUID,
    params: PageParams = Depends(get_page_params),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.get_comment(db, comment_id)
    page = await comment_service.get_replies(db, comment_id, params)
    return await comment_service.page_to_responses(db, page, _viewer_id(current_user))


@router.post("/{comment_id}/replies", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def reply_to_comment(
    comment_id: UUID,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reply = await comment_service.add_reply(db, comment_id, current_user, data.content)
    await db.commit()
    return comment_service.comment_to_response(reply)


@router.post("/{comment_id}/like", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def like_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.like(db, current_user, CommentTarget(comment_id))
    await db.commit()
    return await _respond(db, comment_id, current_user)


@router.delete("/{comment_id}/like", response_model=CommentResponse)
async def unlike_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await engagement_service.unlike(db, current_user, CommentTarget(comment_id))
    await db.commit()
    return await _respond(db, comment_id, current_user)
