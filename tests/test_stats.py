import uuid
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models.engagement import BlogTarget
from app.models.enums import BlogStatus
from app.schemas.pagination import PageParams
from app.services import blog_service, comment_service, engagement_service, stats_service
from tests.conftest import NOW, auth_headers, make_blog, make_user

PARAMS = PageParams(page=0, size=20)
API = "/api/v1"


async def test_count_by_status_lists_every_status(db, alice, bob, blog):
    await make_blog(db, alice, title="Unfinished", publish=False)
    await make_blog(db, bob, title="Elsewhere")

    counts = await stats_service.count_by_status(db)
    assert set(counts) == set(BlogStatus)
    assert counts[BlogStatus.PUBLISHED] == 2
    assert counts[BlogStatus.DRAFT] == 1
    assert counts[BlogStatus.ARCHIVED] == 0

    mine = await stats_service.count_by_status(db, alice.id)
    assert mine[BlogStatus.PUBLISHED] == 1
    assert mine[BlogStatus.DRAFT] == 1


async def test_daily_blog_stats_are_zero_filled(db, blog):
    series = await stats_service.get_daily_blog_stats(db, NOW - timedelta(days=2), NOW)
    assert [(d.date, d.count) for d in series] == [("2026-03-12", 0), ("2026-03-13", 0), ("2026-03-14", 1)]


async def test_daily_window_must_not_be_reversed(db):
    with pytest.raises(ValidationError):
        await stats_service.get_daily_like_stats(db, NOW, NOW - timedelta(days=1))


async def test_daily_likes_and_comments(db, blog, bob):
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    await comment_service.create_comment(db, blog.id, bob, "Nice")
    # audit timestamps come from the wall clock, not the injected one
    now = datetime.utcnow()
    start, end = now - timedelta(days=1), now + timedelta(days=1)

    likes = await stats_service.get_daily_like_stats(db, start, end)
    comments = await stats_service.get_daily_comment_stats(db, start, end)
    assert len(likes) == 3
    assert sum(d.count for d in likes) == 1
    assert sum(d.count for d in comments) == 1


async def test_daily_activity_spans_requested_days(db, blog, clock):
    activity = await stats_service.get_daily_activity(db, clock, 7)
    assert len(activity) == 7
    assert activity[-1].date == "2026-03-14"
    assert activity[-1].blogs == 1
    assert sum(day.blogs for day in activity) == 1


async def test_likes_received_counts_only_the_authors_blogs(db, alice, bob, blog):
    carol = await make_user(db, "carol")
    other = await make_blog(db, bob, title="Bob writes")
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    await engagement_service.like(db, carol, BlogTarget(blog.id))
    await engagement_service.like(db, alice, BlogTarget(other.id))

    assert await stats_service.count_likes_received(db, alice.id) == 2
    assert await stats_service.count_likes_received(db, bob.id) == 1


async def test_author_stats(db, alice, bob, blog):
    await blog_service.record_view(db, blog.id)
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    await engagement_service.follow(db, bob, alice.id)
    await comment_service.create_comment(db, blog.id, bob, "Great read")

    stats = await stats_service.get_author_stats(db, alice.id)
    assert stats.author_id == alice.id
    assert stats.blogs_by_status[BlogStatus.PUBLISHED] == 1
    assert stats.total_views == 1
    assert stats.likes_received == 1
    assert stats.comments_received == 1
    assert stats.followers_count == 1


async def test_author_stats_for_unknown_user(db):
    with pytest.raises(NotFoundError):
        await stats_service.get_author_stats(db, uuid.uuid4())


async def test_dashboard_totals(db, alice, bob, blog):
    await make_blog(db, bob, title="Draft", publish=False)
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    comment = await comment_service.create_comment(db, blog.id, bob, "First")
    await comment_service.create_comment(db, blog.id, alice, "Second")
    await comment_service.soft_delete_comment(db, comment.id, bob)

    stats = await stats_service.get_dashboard_stats(db)
    assert stats.total_users == 2
    assert stats.total_blogs == 2
    assert stats.total_comments == 1
    assert stats.total_likes == 1
    assert stats.blogs_by_status[BlogStatus.DRAFT] == 1


async def test_find_blogs_by_date_range(db, alice, blog):
    await make_blog(db, alice, title="Unpublished", publish=False)

    page = await stats_service.find_blogs_by_date_range(db, NOW - timedelta(hours=1), NOW, PARAMS)
    assert [b.id for b in page.items] == [blog.id]

    page = await stats_service.find_blogs_by_date_range(db, NOW + timedelta(hours=1), NOW + timedelta(days=1), PARAMS)
    assert page.total == 0


async def test_find_old_drafts(db, alice):
    stale = await make_blog(db, alice, title="Forgotten", publish=False)
    await make_blog(db, alice, title="Fresh", publish=False)
    stale.updated_at = NOW - timedelta(days=120)
    await db.flush()

    drafts = await stats_service.find_old_drafts(db, NOW - timedelta(days=90))
    assert [b.id for b in drafts] == [stale.id]


async def test_find_low_engagement_blogs(db, alice, bob, blog):
    liked = await make_blog(db, alice, title="Liked one")
    await engagement_service.like(db, bob, BlogTarget(liked.id))

    quiet = await stats_service.find_low_engagement_blogs(db, NOW + timedelta(days=1))
    assert [b.id for b in quiet] == [blog.id]
    # nothing published before the cutoff
    assert await stats_service.find_low_engagement_blogs(db, NOW - timedelta(days=1)) == []


async def test_most_replied_comments(db, alice, bob, blog):
    quiet = await comment_service.create_comment(db, blog.id, bob, "Anyone?")
    busy = await comment_service.create_comment(db, blog.id, bob, "Hot take")
    await comment_service.add_reply(db, busy.id, alice, "Disagree")
    await comment_service.add_reply(db, busy.id, bob, "Why?")

    page = await comment_service.get_most_replied_comments(db, PARAMS)
    assert page.items[0].id == busy.id
    assert page.items[0].replies_count == 2
    assert quiet.id in [c.id for c in page.items]


async def test_dashboard_endpoint_needs_moderator(client, db, alice, moderator, blog):
    await db.commit()

    response = await client.get(f"{API}/stats/dashboard", headers=auth_headers(alice))
    assert response.status_code == 403

    response = await client.get(f"{API}/stats/dashboard", headers=auth_headers(moderator))
    assert response.status_code == 200
    body = response.json()
    assert body["total_blogs"] == 1
    assert body["blogs_by_status"]["PUBLISHED"] == 1


async def test_my_stats_endpoint(client, db, alice, blog):
    await db.commit()
    response = await client.get(f"{API}/stats/authors/me", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["blogs_by_status"]["PUBLISHED"] == 1


async def test_activity_endpoint_bounds_days(client, db, moderator):
    await db.commit()
    response = await client.get(f"{API}/stats/activity", params={"days": 0}, headers=auth_headers(moderator))
    assert response.status_code == 422
    response = await client.get(f"{API}/stats/activity", params={"days": 3}, headers=auth_headers(moderator))
    assert [d["date"] for d in response.json()] == ["2026-03-12", "2026-03-13", "2026-03-14"]
