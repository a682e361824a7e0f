import pytest

from app.core.clock import system_clock
from app.core.exceptions import ConcurrencyError, NotFoundError, PermissionDeniedError, ValidationError
from app.models.blog import Blog
from app.models.comment import DELETED_COMMENT_CONTENT
from app.schemas.pagination import PageParams
from app.services import blog_service, comment_service
from tests.conftest import make_blog, make_user

PARAMS = PageParams(page=0, size=50)


async def counts(db, blog_id):
    blog = await db.get(Blog, blog_id)
    await db.refresh(blog)
    return blog.comments_count


@pytest.fixture()
async def thread(db, blog, alice, bob):
    """root (bob) > reply (alice) > nested (bob); root > sibling (alice)"""
    root = await comment_service.create_comment(db, blog.id, bob, "Great post")
    reply = await comment_service.add_reply(db, root.id, alice, "Thanks!")
    nested = await comment_service.add_reply(db, reply.id, bob, "You're welcome")
    sibling = await comment_service.add_reply(db, root.id, alice, "Also see part two")
    return {"root": root, "reply": reply, "nested": nested, "sibling": sibling}


async def test_create_bumps_blog_and_parent_counters(db, blog, thread):
    assert await counts(db, blog.id) == 4
    root = await comment_service.reload_comment(db, thread["root"].id)
    assert root.replies_count == 2
    assert root.is_top_level and root.has_replies
    assert not thread["nested"].is_top_level


async def test_comments_require_published_blog_with_comments_on(db, alice, bob, clock):
    draft = await make_blog(db, alice, publish=False, title="draft")
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, draft.id, bob, "hi")
    closed = await make_blog(db, alice, clock, title="closed", is_comments_enabled=False)
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, closed.id, bob, "hi")
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, draft.id, bob, "   ")


async def test_parent_must_belong_to_same_blog(db, alice, bob, clock, thread):
    other = await make_blog(db, alice, clock, title="other")
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, other.id, bob, "cross-post", parent_id=thread["root"].id)


async def test_thread_is_root_plus_descendants_oldest_first(db, thread):
    comments = await comment_service.get_comment_thread(db, thread["root"].id)
    assert [c.id for c in comments] == [thread[k].id for k in ("root", "reply", "nested", "sibling")]
    sub = await comment_service.get_comment_thread(db, thread["reply"].id)
    assert [c.id for c in sub] == [thread["reply"].id, thread["nested"].id]


async def test_soft_delete_keeps_descendants(db, blog, alice, thread):
    deleted = await comment_service.soft_delete_comment(db, thread["reply"].id, alice)
    assert deleted.is_deleted
    assert deleted.content == DELETED_COMMENT_CONTENT

    visible = await comment_service.get_comment_thread(db, thread["root"].id)
    ids = [c.id for c in visible]
    assert thread["reply"].id not in ids
    assert thread["nested"].id in ids
    nested = await comment_service.reload_comment(db, thread["nested"].id)
    assert nested.parent_id == thread["reply"].id
    assert await counts(db, blog.id) == 3


async def test_soft_delete_decrements_once(db, blog, alice, moderator, thread):
    await comment_service.soft_delete_comment(db, thread["sibling"].id, alice)
    await comment_service.soft_delete_comment(db, thread["sibling"].id, moderator)
    assert await counts(db, blog.id) == 3
    with pytest.raises(PermissionDeniedError):
        await comment_service.soft_delete_comment(db, thread["root"].id, alice)


async def test_restore_counts_again(db, blog, alice, moderator, thread):
    await comment_service.soft_delete_comment(db, thread["sibling"].id, alice)
    with pytest.raises(PermissionDeniedError):
        await comment_service.restore_comment(db, thread["sibling"].id, alice)
    restored = await comment_service.restore_comment(db, thread["sibling"].id, moderator)
    assert not restored.is_deleted
    assert await counts(db, blog.id) == 4


async def test_remove_reply_drops_subtree(db, blog, moderator, alice, thread):
    with pytest.raises(PermissionDeniedError):
        await comment_service.remove_reply(db, thread["reply"].id, alice)
    with pytest.raises(ValidationError):
        await comment_service.remove_reply(db, thread["root"].id, moderator)

    removed = await comment_service.remove_reply(db, thread["reply"].id, moderator)

    assert removed == 2
    with pytest.raises(NotFoundError):
        await comment_service.get_comment(db, thread["nested"].id)
    root = await comment_service.reload_comment(db, thread["root"].id)
    assert root.replies_count == 1
    assert await counts(db, blog.id) == 2


async def test_tree_reattaches_replies_of_hidden_comments(db, moderator, thread):
    await comment_service.reject_comment(db, thread["reply"].id, moderator)
    tree = await comment_service.get_comment_tree(db, thread["root"].id)
    assert tree.id == thread["root"].id
    assert sorted(r.id for r in tree.replies) == sorted([thread["nested"].id, thread["sibling"].id])


async def test_edit_marks_edited(db, alice, bob, thread):
    reply = thread["reply"]
    with pytest.raises(PermissionDeniedError):
        await comment_service.edit_comment(db, reply.id, bob, "nope")
    edited = await comment_service.edit_comment(db, reply.id, alice, "Thanks a lot!", "typo", reply.version)
    assert edited.is_edited
    assert edited.edit_reason == "typo"
    with pytest.raises(ConcurrencyError):
        await comment_service.edit_comment(db, reply.id, alice, "again", None, edited.version - 1)


async def test_moderation_queues(db, moderator, thread):
    await comment_service.reject_comment(db, thread["reply"].id, moderator)
    await comment_service.reject_comment(db, thread["nested"].id, moderator, reason="spam")
    await comment_service.soft_delete_comment(db, thread["sibling"].id, moderator)

    pending = await comment_service.get_comments_awaiting_approval(db, PARAMS)
    assert {c.id for c in pending.items} == {thread["reply"].id, thread["nested"].id}
    flagged = await comment_service.get_flagged_comments(db, PARAMS)
    assert [c.id for c in flagged.items] == [thread["nested"].id]
    deleted = await comment_service.get_deleted_comments(db, PARAMS)
    assert [c.id for c in deleted.items] == [thread["sibling"].id]

    approved = await comment_service.approve_comment(db, thread["reply"].id, moderator)
    assert approved.is_approved


async def test_bulk_operations(db, alice, bob, clock, moderator, blog, thread):
    other = await make_blog(db, alice, clock, title="other")
    elsewhere = await comment_service.create_comment(db, other.id, bob, "hello")
    await comment_service.reject_comment(db, thread["reply"].id, moderator)
    await comment_service.reject_comment(db, thread["nested"].id, moderator)

    approved = await comment_service.bulk_approve_comments(
        db, [thread["reply"].id, thread["nested"].id, thread["root"].id], moderator
    )
    assert approved == 2

    deleted = await comment_service.bulk_delete_comments(
        db, [thread["sibling"].id, thread["nested"].id, elsewhere.id], moderator
    )
    assert deleted == 3
    again = await comment_service.bulk_delete_comments(db, [thread["sibling"].id], moderator)
    assert again == 0
    assert await counts(db, blog.id) == 2
    assert await counts(db, other.id) == 0
    with pytest.raises(PermissionDeniedError):
        await comment_service.bulk_approve_comments(db, [thread["root"].id], alice)


async def test_listings(db, blog, alice, bob, thread):
    top = await comment_service.get_top_level_comments(db, blog.id, PARAMS)
    assert [c.id for c in top.items] == [thread["root"].id]
    replies = await comment_service.get_replies(db, thread["root"].id, PARAMS)
    assert [c.id for c in replies.items] == [thread["reply"].id, thread["sibling"].id]
    assert (await comment_service.get_visible_comments(db, blog.id, PARAMS)).total == 4
    assert (await comment_service.get_comments_by_author(db, bob.id, PARAMS)).total == 2
    found = await comment_service.search_comments(db, "PART TWO", PARAMS)
    assert [c.id for c in found.items] == [thread["sibling"].id]


async def test_trending_and_most_liked(db, thread):
    root = await comment_service.reload_comment(db, thread["root"].id)
    nested = await comment_service.reload_comment(db, thread["nested"].id)
    nested.likes_count = 5   # 3.0 beats root's 2 replies (0.8)
    await db.flush()
    trending = await comment_service.get_trending_comments(db, PARAMS, system_clock)
    assert trending.items[0].id == nested.id
    assert trending.items[1].id == root.id
    liked = await comment_service.get_most_liked_comments(db, PARAMS)
    assert liked.items[0].id == nested.id


async def test_conversation_participants(db, blog, alice, bob, thread):
    carol = await make_user(db, "carol")
    participants = await comment_service.get_conversation_participants(db, blog.id)
    assert [u.username for u in participants] == ["alice", "bob"]
    without_bob = await comment_service.get_conversation_participants(db, blog.id, exclude_user_id=bob.id)
    assert [u.username for u in without_bob] == ["alice"]
    assert carol.id not in {u.id for u in participants}


async def test_archived_blog_rejects_new_comments(db, blog, alice, bob):
    await blog_service.archive_blog(db, blog.id, alice)
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, blog.id, bob, "late")
