import asyncio
import random

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.blog import Blog
from app.models.comment import Comment
from app.models.engagement import BlogTarget, CommentTarget, Like
from app.schemas.pagination import PageParams
from app.services import comment_service, engagement_service, user_service
from tests.conftest import make_blog, make_user

PARAMS = PageParams(page=0, size=50)


async def like_rows(db, **where) -> int:
    column, value = next(iter(where.items()))
    return await db.scalar(select(func.count(Like.id)).where(getattr(Like, column) == value))


async def blog_likes(db, blog_id) -> int:
    blog = await db.get(Blog, blog_id)
    await db.refresh(blog)
    return blog.likes_count


async def test_two_users_like_same_blog(db, blog, bob):
    carol = await make_user(db, "carol")
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    await engagement_service.like(db, carol, BlogTarget(blog.id))
    assert await blog_likes(db, blog.id) == 2
    assert await engagement_service.has_liked(db, bob.id, BlogTarget(blog.id))


async def test_concurrent_likes_both_count(db, session_maker, blog, bob):
    carol = await make_user(db, "carol")
    await db.commit()

    async def like_as(user):
        async with session_maker() as session:
            await engagement_service.like(session, user, BlogTarget(blog.id))
            await session.commit()

    await asyncio.gather(like_as(bob), like_as(carol))

    async with session_maker() as session:
        assert await blog_likes(session, blog.id) == 2
        assert await like_rows(session, blog_id=blog.id) == 2


async def test_like_unlike_sequence_matches_rows(db, blog):
    users = [await make_user(db, f"reader{i}") for i in range(4)]
    rng = random.Random(7)
    target = BlogTarget(blog.id)
    for _ in range(30):
        user = rng.choice(users)
        if await engagement_service.has_liked(db, user.id, target):
            await engagement_service.unlike(db, user, target)
        else:
            await engagement_service.like(db, user, target)
        assert await blog_likes(db, blog.id) == await like_rows(db, blog_id=blog.id)


async def test_repeat_like_and_missing_unlike(db, blog, bob):
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    with pytest.raises(ConflictError):
        await engagement_service.like(db, bob, BlogTarget(blog.id))
    await engagement_service.unlike(db, bob, BlogTarget(blog.id))
    with pytest.raises(NotFoundError):
        await engagement_service.unlike(db, bob, BlogTarget(blog.id))
    assert await blog_likes(db, blog.id) == 0


async def test_cannot_like_unpublished_blog(db, alice, bob):
    draft = await make_blog(db, alice, publish=False)
    with pytest.raises(ValidationError):
        await engagement_service.like(db, bob, BlogTarget(draft.id))


async def test_comment_likes(db, blog, alice, bob):
    comment = await comment_service.create_comment(db, blog.id, alice, "first")
    await engagement_service.like(db, bob, CommentTarget(comment.id))
    comment = await comment_service.reload_comment(db, comment.id)
    assert comment.likes_count == 1
    assert await like_rows(db, comment_id=comment.id) == 1
    assert await blog_likes(db, blog.id) == 0

    await engagement_service.unlike(db, bob, CommentTarget(comment.id))
    comment = await db.get(Comment, comment.id)
    await db.refresh(comment)
    assert comment.likes_count == 0


async def test_deleted_comment_cannot_be_liked(db, blog, alice, bob):
    comment = await comment_service.create_comment(db, blog.id, alice, "gone soon")
    await comment_service.soft_delete_comment(db, comment.id, alice)
    with pytest.raises(ValidationError):
        await engagement_service.like(db, bob, CommentTarget(comment.id))


async def test_likers_and_liked_blogs(db, blog, bob):
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    likers = await engagement_service.get_likers(db, BlogTarget(blog.id), PARAMS)
    assert [u.username for u in likers.items] == ["bob"]
    liked = await engagement_service.get_liked_blogs(db, bob.id, PARAMS)
    assert [b.id for b in liked.items] == [blog.id]


class TestFollows:
    async def test_follow_moves_both_counters(self, db, alice, bob):
        row = await engagement_service.follow(db, bob, alice.id)
        assert row.is_notification_sent
        await db.refresh(alice)
        await db.refresh(bob)
        assert (alice.followers_count, bob.following_count) == (1, 1)
        assert await engagement_service.is_following(db, bob.id, alice.id)

        await engagement_service.unfollow(db, bob, alice.id)
        await db.refresh(alice)
        await db.refresh(bob)
        assert (alice.followers_count, bob.following_count) == (0, 0)

    async def test_self_and_duplicate_follow(self, db, alice, bob):
        with pytest.raises(ValidationError):
            await engagement_service.follow(db, alice, alice.id)
        await engagement_service.follow(db, bob, alice.id)
        with pytest.raises(ConflictError):
            await engagement_service.follow(db, bob, alice.id)
        await engagement_service.unfollow(db, bob, alice.id)
        with pytest.raises(NotFoundError):
            await engagement_service.unfollow(db, bob, alice.id)

    async def test_cannot_follow_inactive_user(self, db, alice, bob):
        await user_service.deactivate_user(db, alice.id, alice)
        with pytest.raises(NotFoundError):
            await engagement_service.follow(db, bob, alice.id)

    async def test_followers_and_following_lists(self, db, alice, bob):
        carol = await make_user(db, "carol")
        await engagement_service.follow(db, bob, alice.id)
        await engagement_service.follow(db, carol, alice.id)
        await engagement_service.follow(db, carol, bob.id)

        followers = await engagement_service.get_followers(db, alice.id, PARAMS)
        assert [u.username for u in followers.items] == ["bob", "carol"]
        following = await engagement_service.get_following(db, carol.id, PARAMS)
        assert [u.username for u in following.items] == ["alice", "bob"]
        assert await engagement_service.get_following_ids(db, carol.id, [alice.id, bob.id]) == {alice.id, bob.id}
