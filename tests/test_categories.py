import pytest
from pydantic import ValidationError as SchemaError

from app.core.exceptions import ConcurrencyError, ConflictError, ValidationError
from app.models.category import DEFAULT_CATEGORY_COLOR
from app.schemas.blog import BlogUpdate
from app.schemas.category import CategoryCreate, CategoryUpdate
from app.services import blog_service, category_service
from tests.conftest import make_blog


async def create(db, name, parent=None, **fields):
    return await category_service.create_category(
        db, CategoryCreate(name=name, parent_id=parent.id if parent else None, **fields)
    )


@pytest.fixture()
async def tree(db):
    """tech > (python > asyncio, rust); life"""
    tech = await create(db, "Tech", color="#FF0000")
    python = await create(db, "Python", tech, sort_order=2)
    rust = await create(db, "Rust", tech, sort_order=1)
    asyncio_ = await create(db, "Asyncio", python)
    life = await create(db, "Life")
    return {"tech": tech, "python": python, "rust": rust, "asyncio": asyncio_, "life": life}


async def test_create_generates_slug_and_rejects_duplicates(db):
    first = await create(db, "Data Science")
    second = await create(db, "Data Science")
    assert first.slug == "data-science"
    assert second.slug == "data-science-2"
    with pytest.raises(ConflictError):
        await create(db, "Other", slug="data-science")


async def test_ancestors_depth_and_path(db, tree):
    ancestors = await category_service.get_ancestors(db, tree["asyncio"].id)
    assert [c.slug for c in ancestors] == ["tech", "python"]
    assert await category_service.get_depth_level(db, tree["tech"].id) == 0
    assert await category_service.get_depth_level(db, tree["asyncio"].id) == 2
    assert await category_service.get_full_path(db, tree["asyncio"].id) == "Tech > Python > Asyncio"


async def test_descendants_preorder_by_sort_order(db, tree):
    descendants = await category_service.get_all_descendants(db, tree["tech"].id)
    assert [c.slug for c in descendants] == ["rust", "python", "asyncio"]


async def test_effective_color_inherits(db, tree):
    assert await category_service.get_effective_color(db, tree["asyncio"].id) == "#FF0000"
    assert await category_service.get_effective_color(db, tree["life"].id) == DEFAULT_CATEGORY_COLOR


async def test_total_blog_count_sums_subtree(db, alice, clock, tree):
    await make_blog(db, alice, clock, title="a", category_id=tree["asyncio"].id)
    await make_blog(db, alice, clock, title="b", category_id=tree["python"].id)
    await make_blog(db, alice, clock, title="c", category_id=tree["tech"].id)
    await make_blog(db, alice, clock, title="d", category_id=tree["life"].id)

    assert await category_service.get_total_blog_count(db, tree["tech"].id) == 3
    assert await category_service.get_total_blog_count(db, tree["python"].id) == 2
    for cat in tree.values():
        await db.refresh(cat)
        assert cat.subtree_blog_count == await category_service.get_total_blog_count(db, cat.id)


async def test_blog_category_change_moves_counts(db, alice, clock, tree):
    blog = await make_blog(db, alice, clock, publish=False, category_id=tree["asyncio"].id)
    await blog_service.update_blog(
        db, blog.id, alice, BlogUpdate(category_id=tree["life"].id)
    )
    await db.refresh(tree["tech"])
    await db.refresh(tree["life"])
    assert tree["tech"].subtree_blog_count == 0
    assert tree["life"].blog_count == 1
    assert tree["life"].subtree_blog_count == 1


async def test_move_rejects_cycles(db, tree):
    with pytest.raises(ValidationError):
        await category_service.move_category(db, tree["tech"].id, tree["asyncio"].id)
    with pytest.raises(ValidationError):
        await category_service.add_child(db, tree["python"].id, tree["python"].id)


async def test_move_carries_subtree_count(db, alice, clock, tree):
    await make_blog(db, alice, clock, title="a", category_id=tree["asyncio"].id)
    await make_blog(db, alice, clock, title="b", category_id=tree["python"].id)

    await category_service.move_category(db, tree["python"].id, tree["life"].id)

    for cat in tree.values():
        await db.refresh(cat)
    assert tree["tech"].subtree_blog_count == 0
    assert tree["life"].subtree_blog_count == 2
    assert await category_service.get_full_path(db, tree["asyncio"].id) == "Life > Python > Asyncio"


async def test_move_carries_blog_assigned_meanwhile(db, session_maker, alice, clock, tree, monkeypatch):
    await make_blog(db, alice, clock, title="a", category_id=tree["asyncio"].id)
    await make_blog(db, alice, clock, title="b", category_id=tree["python"].id)
    await db.commit()

    lock_lineages = category_service._lock_lineages
    assigned = []

    async def assign_while_moving(session, ids):
        lineages = await lock_lineages(session, ids)
        if not assigned:
            assigned.append(True)
            async with session_maker() as other:
                await make_blog(other, alice, clock, title="c", category_id=tree["asyncio"].id)
                await other.commit()
        return lineages

    monkeypatch.setattr(category_service, "_lock_lineages", assign_while_moving)
    async with session_maker() as session:
        await category_service.move_category(session, tree["python"].id, tree["life"].id)
        await session.commit()

    async with session_maker() as session:
        for key, expected in [("tech", 0), ("life", 3), ("python", 3), ("asyncio", 2)]:
            cat = await category_service.get_category(session, tree[key].id)
            assert cat.subtree_blog_count == expected
            assert cat.subtree_blog_count == await category_service.get_total_blog_count(session, cat.id)


async def test_remove_child_makes_root(db, tree):
    moved = await category_service.remove_child(db, tree["tech"].id, tree["rust"].id)
    assert moved.parent_id is None
    with pytest.raises(ValidationError):
        await category_service.remove_child(db, tree["tech"].id, tree["rust"].id)


async def test_category_tree_nests_children(db, tree):
    roots = await category_service.get_category_tree(db)
    by_slug = {r.slug: r for r in roots}
    assert set(by_slug) == {"tech", "life"}
    tech = by_slug["tech"]
    assert [c.slug for c in tech.children] == ["rust", "python"]
    assert tech.children[1].children[0].slug == "asyncio"
    assert tech.children[1].children[0].color == "#FF0000"


async def test_stats(db, alice, clock, tree):
    await make_blog(db, alice, clock, category_id=tree["asyncio"].id)
    stats = await category_service.get_category_stats(db, tree["asyncio"].id)
    assert stats.depth == 2
    assert stats.full_path == "Tech > Python > Asyncio"
    assert stats.effective_color == "#FF0000"
    assert stats.total_blog_count == 1


async def test_delete_guards(db, alice, clock, tree):
    with pytest.raises(ConflictError):
        await category_service.delete_category(db, tree["tech"].id)
    await make_blog(db, alice, clock, category_id=tree["life"].id)
    await db.refresh(tree["life"])
    with pytest.raises(ConflictError):
        await category_service.delete_category(db, tree["life"].id)
    await category_service.delete_category(db, tree["rust"].id)
    assert [c.slug for c in await category_service.get_children(db, tree["tech"].id)] == ["python"]


async def test_update_with_stale_version(db, tree):
    with pytest.raises(ConcurrencyError):
        await category_service.update_category(
            db, tree["life"].id, CategoryUpdate(name="Living", version=tree["life"].version + 5)
        )
    updated = await category_service.update_category(
        db, tree["life"].id, CategoryUpdate(name="Living", version=tree["life"].version)
    )
    assert updated.name == "Living"


def test_update_rejects_null_name_and_flag():
    with pytest.raises(SchemaError):
        CategoryUpdate(name=None)
    with pytest.raises(SchemaError):
        CategoryUpdate(is_active=None)
    # nullable columns can still be cleared
    assert CategoryUpdate(color=None).model_dump(exclude_unset=True) == {"color": None}
