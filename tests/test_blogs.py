import asyncio
from datetime import timedelta, timezone

import pytest
from pydantic import ValidationError as SchemaError

from app.core.clock import FixedClock
from app.core.exceptions import ConcurrencyError, NotFoundError, PermissionDeniedError, ValidationError
from app.models.blog import Blog
from app.models.engagement import BlogTarget
from app.models.enums import BlogStatus
from app.models.tag import Tag
from app.schemas.blog import BlogCreate, BlogUpdate
from app.schemas.category import CategoryCreate
from app.schemas.pagination import PageParams, SortDirection
from app.services import blog_service, category_service, engagement_service
from app.services.common import flush
from tests.conftest import NOW, make_blog, make_user

PARAMS = PageParams(page=0, size=20)


def slugs(page):
    return [b.slug for b in page.items]


class TestAuthoring:
    async def test_create_starts_as_draft_and_bumps_counters(self, db, alice):
        blog = await blog_service.create_blog(
            db, alice, BlogCreate(title="My First Post", content="hello there", tags=["Python", "python", "Web Dev"])
        )
        assert blog.status == BlogStatus.DRAFT
        assert blog.slug == "my-first-post"
        assert blog.published_at is None
        await db.refresh(alice)
        assert alice.blogs_count == 1
        tags = (await blog_service.to_responses(db, [blog]))[0].tags
        assert sorted(t.slug for t in tags) == ["python", "web-dev"]

    async def test_duplicate_titles_get_suffixed_slugs(self, db, alice):
        first = await make_blog(db, alice, publish=False)
        second = await make_blog(db, alice, publish=False)
        assert (first.slug, second.slug) == ("hello-world", "hello-world-2")

    async def test_drafts_hidden_from_other_users(self, db, alice, bob, moderator):
        draft = await make_blog(db, alice, publish=False)
        assert (await blog_service.get_blog(db, draft.id, alice)).id == draft.id
        assert (await blog_service.get_blog(db, draft.id, moderator)).id == draft.id
        with pytest.raises(NotFoundError):
            await blog_service.get_blog(db, draft.id, bob)
        with pytest.raises(NotFoundError):
            await blog_service.get_blog_by_slug(db, draft.slug)

    async def test_only_author_or_moderator_can_edit(self, db, alice, bob, moderator, blog):
        with pytest.raises(PermissionDeniedError):
            await blog_service.update_blog(db, blog.id, bob, BlogUpdate(title="Hijacked"))
        with pytest.raises(ValidationError):
            await blog_service.update_blog(db, blog.id, alice, BlogUpdate(title="Too late"))
        updated = await blog_service.update_blog(db, blog.id, moderator, BlogUpdate(title="Fixed typo"))
        assert updated.title == "Fixed typo"

    async def test_update_rejects_stale_version(self, db, alice):
        draft = await make_blog(db, alice, publish=False)
        version = draft.version
        await blog_service.update_blog(db, draft.id, alice, BlogUpdate(title="v2", version=version))
        with pytest.raises(ConcurrencyError):
            await blog_service.update_blog(db, draft.id, alice, BlogUpdate(title="v3", version=version))

    async def test_update_replaces_tags(self, db, alice):
        draft = await make_blog(db, alice, publish=False, tags=["go", "rust"])
        await blog_service.update_blog(db, draft.id, alice, BlogUpdate(tags=["rust", "zig"]))
        usage = {t.slug: t.usage_count for t in (await db.execute(Tag.__table__.select())).all()}
        assert usage == {"go": 0, "rust": 1, "zig": 1}

    def test_update_rejects_explicit_null(self):
        with pytest.raises(SchemaError):
            BlogUpdate(title=None)
        with pytest.raises(SchemaError):
            BlogUpdate(is_comments_enabled=None)
        # omitted fields stay unset
        assert BlogUpdate(summary="short").model_dump(exclude_unset=True) == {"summary": "short"}

    async def test_not_null_failure_is_not_a_conflict(self, db, alice):
        draft = await make_blog(db, alice, publish=False)
        draft.title = None
        with pytest.raises(ValidationError):
            await flush(db)

    async def test_delete_releases_counters(self, db, alice):
        draft = await make_blog(db, alice, publish=False, tags=["go"])
        await blog_service.delete_blog(db, draft.id, alice)
        await db.refresh(alice)
        assert alice.blogs_count == 0
        assert await db.get(Blog, draft.id) is None
        go = (await db.execute(Tag.__table__.select().where(Tag.slug == "go"))).one()
        assert go.usage_count == 0


class TestTransitions:
    async def test_published_at_tracks_status(self, db, alice, clock):
        draft = await make_blog(db, alice, publish=False)

        def consistent(b):
            return (b.published_at is not None) == (b.status == BlogStatus.PUBLISHED)

        steps = [
            lambda: blog_service.schedule_blog(db, draft.id, alice, NOW + timedelta(hours=2), clock),
            lambda: blog_service.publish_blog(db, draft.id, alice, clock),
            lambda: blog_service.draft_blog(db, draft.id, alice),
            lambda: blog_service.publish_blog(db, draft.id, alice, clock),
            lambda: blog_service.draft_blog(db, draft.id, alice),
        ]
        for step in steps:
            result = await step()
            assert consistent(result)

    async def test_archive_keeps_publish_time(self, db, alice):
        blog = await make_blog(db, alice, FixedClock(NOW))
        await blog_service.archive_blog(db, blog.id, alice)
        assert blog.published_at == NOW
        archived = await blog_service.get_blog(db, blog.id, alice)
        assert archived.status == BlogStatus.ARCHIVED

    async def test_schedule_normalizes_aware_datetimes(self, db, alice, clock):
        draft = await make_blog(db, alice, publish=False)
        at = (NOW + timedelta(days=1)).replace(tzinfo=timezone.utc)
        scheduled = await blog_service.schedule_blog(db, draft.id, alice, at, clock)
        assert scheduled.scheduled_at == NOW + timedelta(days=1)
        assert scheduled.scheduled_at.tzinfo is None

    async def test_feature_requires_moderator_and_published(self, db, alice, moderator, blog):
        with pytest.raises(PermissionDeniedError):
            await blog_service.set_featured(db, blog.id, alice)
        featured = await blog_service.set_featured(db, blog.id, moderator)
        assert featured.is_featured
        draft = await make_blog(db, alice, publish=False, title="draft")
        with pytest.raises(ValidationError):
            await blog_service.set_featured(db, draft.id, moderator)

    async def test_record_view(self, db, blog):
        viewed = await blog_service.record_view(db, blog.id)
        viewed = await blog_service.record_view(db, blog.id)
        assert viewed.views_count == 2


class TestPublishSweep:
    async def test_publishes_due_blogs_only(self, db, alice, clock):
        due = await make_blog(db, alice, publish=False, title="due")
        later = await make_blog(db, alice, publish=False, title="later")
        await blog_service.schedule_blog(db, due.id, alice, NOW + timedelta(minutes=5), clock)
        await blog_service.schedule_blog(db, later.id, alice, NOW + timedelta(days=3), clock)
        clock.advance(hours=1)

        published = await blog_service.publish_scheduled_blogs(db, clock)

        assert published == [due.id]
        due = await blog_service.reload_blog(db, due.id)
        later = await blog_service.reload_blog(db, later.id)
        assert due.status == BlogStatus.PUBLISHED
        assert due.published_at == clock.now()
        assert due.scheduled_at is None
        assert later.status == BlogStatus.SCHEDULED

    async def test_overlapping_sweeps_transition_once(self, session_maker, clock, dispatched):
        async with session_maker() as setup:
            author = await make_user(setup, "writer")
            draft = await make_blog(setup, author, publish=False)
            await blog_service.schedule_blog(setup, draft.id, author, NOW + timedelta(minutes=1), clock)
            await setup.commit()
        clock.advance(minutes=10)

        async def sweep():
            async with session_maker() as session:
                published = await blog_service.publish_scheduled_blogs(session, clock)
                await session.commit()
                return published

        results = await asyncio.gather(sweep(), sweep())

        assert sorted(results, key=len) == [[], [draft.id]]
        async with session_maker() as session:
            assert (await session.get(Blog, draft.id)).status == BlogStatus.PUBLISHED
        assert [e.kind for e in dispatched] == ["BLOG_PUBLISHED"]


class TestQueries:
    async def test_trending_weights_and_window(self, db, alice, clock):
        viewed = await make_blog(db, alice, clock, title="viewed")
        engaged = await make_blog(db, alice, clock, title="engaged")
        old = await make_blog(db, alice, FixedClock(NOW - timedelta(days=30)), title="old")
        viewed.views_count = 10          # 2.0
        engaged.likes_count = 3          # 1.2 + 1.2 = 2.4
        engaged.comments_count = 3
        old.likes_count = 100
        await db.flush()

        page = await blog_service.get_trending_blogs(db, PARAMS, clock)
        assert slugs(page) == ["engaged", "viewed"]
        wide = await blog_service.get_trending_blogs(db, PARAMS, clock, days=60)
        assert slugs(wide)[0] == "old"

    async def test_popular_and_most_viewed(self, db, alice, clock):
        a = await make_blog(db, alice, clock, title="a")
        b = await make_blog(db, alice, clock, title="b")
        a.likes_count, b.views_count = 5, 9
        await db.flush()
        assert slugs(await blog_service.get_popular_blogs(db, PARAMS))[0] == "a"
        assert slugs(await blog_service.get_most_viewed_blogs(db, PARAMS))[0] == "b"

    async def test_find_by_all_tags_requires_every_tag(self, db, alice, clock):
        await make_blog(db, alice, clock, title="only go", tags=["go"])
        await make_blog(db, alice, clock, title="go and rust", tags=["go", "rust"])
        await make_blog(db, alice, clock, title="everything", tags=["go", "rust", "zig"])

        page = await blog_service.find_by_all_tags(db, ["go", "rust"], PARAMS)
        assert sorted(slugs(page)) == ["everything", "go-and-rust"]
        single = await blog_service.find_by_all_tags(db, ["Go", "go "], PARAMS)
        assert single.total == 3
        with pytest.raises(ValidationError):
            await blog_service.find_by_all_tags(db, ["  "], PARAMS)

    async def test_find_by_tag_and_category(self, db, alice, clock):
        parent = await category_service.create_category(db, CategoryCreate(name="Tech"))
        child = await category_service.create_category(db, CategoryCreate(name="Python", parent_id=parent.id))
        await make_blog(db, alice, clock, title="in child", category_id=child.id, tags=["tips"])
        await make_blog(db, alice, clock, title="in parent", category_id=parent.id)

        assert slugs(await blog_service.find_by_tag(db, "tips", PARAMS)) == ["in-child"]
        assert slugs(await blog_service.find_by_category(db, "tech", PARAMS)) == ["in-parent"]
        deep = await blog_service.find_by_category(db, "tech", PARAMS, include_descendants=True)
        assert deep.total == 2

    async def test_search_is_case_insensitive_and_public_only(self, db, alice, clock):
        await make_blog(db, alice, clock, title="Async Python")
        await make_blog(db, alice, publish=False, title="Async drafts")
        page = await blog_service.search_blogs(db, "ASYNC", PARAMS)
        assert slugs(page) == ["async-python"]
        with pytest.raises(ValidationError):
            await blog_service.search_blogs(db, " ", PARAMS)

    async def test_advanced_search_combines_filters(self, db, alice, bob, clock):
        await make_blog(db, alice, clock, title="alice python", tags=["python"])
        await make_blog(db, bob, clock, title="bob python", tags=["python"])
        page = await blog_service.advanced_search(db, PARAMS, term="python", author_id=bob.id, tag="python")
        assert slugs(page) == ["bob-python"]

    async def test_published_today_uses_clock(self, db, alice, clock):
        await make_blog(db, alice, clock, title="today")
        await make_blog(db, alice, FixedClock(NOW - timedelta(days=1)), title="yesterday")
        assert slugs(await blog_service.get_blogs_published_today(db, PARAMS, clock)) == ["today"]
        recent = await blog_service.get_recent_blogs(db, PARAMS, NOW - timedelta(days=2))
        assert slugs(recent) == ["today", "yesterday"]

    async def test_sort_whitelist(self, db, alice, clock):
        await make_blog(db, alice, clock, title="b")
        await make_blog(db, alice, clock, title="a")
        page = await blog_service.list_published(db, PageParams(sort="title", direction=SortDirection.ASC))
        assert slugs(page) == ["a", "b"]
        with pytest.raises(ValidationError):
            await blog_service.list_published(db, PageParams(sort="password_hash"))

    async def test_feed_recommended_and_similar(self, db, alice, bob, clock):
        carol = await make_user(db, "carol")
        cat = await category_service.create_category(db, CategoryCreate(name="Travel"))
        liked = await make_blog(db, alice, clock, title="alice travel", category_id=cat.id)
        await make_blog(db, carol, clock, title="carol travel", category_id=cat.id)
        await make_blog(db, bob, clock, title="bob travel", category_id=cat.id)
        await engagement_service.follow(db, bob, alice.id)
        await engagement_service.like(db, bob, BlogTarget(liked.id))

        assert slugs(await blog_service.get_feed_for_user(db, bob.id, PARAMS)) == ["alice-travel"]
        recommended = await blog_service.get_recommended_blogs(db, bob.id, PARAMS)
        assert sorted(slugs(recommended)) == ["alice-travel", "carol-travel"]
        similar = await blog_service.get_similar_blogs(db, liked.id, PARAMS)
        assert sorted(slugs(similar)) == ["bob-travel", "carol-travel"]

    async def test_author_listing_visibility(self, db, alice, bob, clock):
        await make_blog(db, alice, clock, title="public")
        await make_blog(db, alice, publish=False, title="private")
        assert (await blog_service.get_blogs_by_author(db, alice.id, PARAMS, alice)).total == 2
        assert slugs(await blog_service.get_blogs_by_author(db, alice.id, PARAMS, bob)) == ["public"]
        assert slugs(await blog_service.get_drafts_by_author(db, alice.id, PARAMS)) == ["private"]
