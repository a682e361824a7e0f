from sqlalchemy import text

from app.models.engagement import BlogTarget, CommentTarget
from app.schemas.category import CategoryCreate
from app.services import category_service, comment_service, engagement_service, maintenance
from tests.conftest import make_blog, make_user


async def test_consistent_data_reports_no_drift(db, blog, alice, bob):
    await engagement_service.like(db, bob, BlogTarget(blog.id))
    await engagement_service.follow(db, bob, alice.id)
    await comment_service.create_comment(db, blog.id, bob, "nice")
    drift = await maintenance.reconcile_counters(db)
    assert not any(drift.values()), drift


async def test_drifted_counters_are_recomputed(db, alice, bob, clock):
    parent = await category_service.create_category(db, CategoryCreate(name="Parent"))
    child = await category_service.create_category(db, CategoryCreate(name="Child", parent_id=parent.id))
    blog = await make_blog(db, alice, clock, category_id=child.id, tags=["go"])
    comment = await comment_service.create_comment(db, blog.id, bob, "nice")
    await engagement_service.like(db, bob, CommentTarget(comment.id))
    await db.flush()

    await db.execute(text("UPDATE blogs SET comments_count = 7, likes_count = 3"))
    await db.execute(text("UPDATE comments SET likes_count = 0"))
    await db.execute(text("UPDATE users SET blogs_count = 5"))
    await db.execute(text("UPDATE categories SET subtree_blog_count = 0"))

    drift = await maintenance.reconcile_counters(db)

    assert drift["blogs.comments_count"] == 1
    assert drift["blogs.likes_count"] == 1
    assert drift["comments.likes_count"] == 1
    assert drift["users.blogs_count"] == 2
    assert drift["categories.subtree_blog_count"] == 2
    for obj in (blog, comment, alice, parent, child):
        await db.refresh(obj)
    assert (blog.comments_count, blog.likes_count) == (1, 0)
    assert comment.likes_count == 1
    assert alice.blogs_count == 1
    assert (parent.subtree_blog_count, child.subtree_blog_count) == (1, 1)
    assert await maintenance.reconcile_counters(db) == {k: 0 for k in drift}


async def test_soft_deleted_comments_are_not_counted(db, blog, alice, bob):
    comment = await comment_service.create_comment(db, blog.id, bob, "bye")
    await comment_service.soft_delete_comment(db, comment.id, bob)
    drift = await maintenance.reconcile_counters(db)
    assert drift["blogs.comments_count"] == 0
    assert drift["comments.replies_count"] == 0


async def test_orphaned_likes_cleanup(engine, session_maker, clock):
    async with session_maker() as db:
        author = await make_user(db, "author")
        reader = await make_user(db, "reader")
        blog = await make_blog(db, author, clock)
        like = await engagement_service.like(db, reader, BlogTarget(blog.id))
        await db.commit()
        like_id = like.id

    # simulate a store without enforced foreign keys
    async with engine.connect() as conn:
        await conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        await conn.exec_driver_sql("DELETE FROM blogs")
        await conn.commit()
        await conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    async with session_maker() as db:
        assert await maintenance.find_orphaned_likes(db) == [like_id]
        assert await maintenance.cleanup_orphaned_likes(db) == 1
        assert await maintenance.find_orphaned_likes(db) == []
        await db.commit()
