import pytest
from pydantic import ValidationError as SchemaError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.schemas.pagination import PageParams
from app.schemas.tag import TagCreate, TagUpdate
from app.services import tag_service
from tests.conftest import make_blog

PARAMS = PageParams(page=0, size=50)


async def test_create_and_lookup(db):
    tag = await tag_service.create_tag(db, TagCreate(name="Machine Learning"))
    assert tag.slug == "machine-learning"
    assert (await tag_service.get_tag_by_slug(db, "machine-learning")).id == tag.id
    with pytest.raises(ConflictError):
        await tag_service.create_tag(db, TagCreate(name="ML", slug="machine-learning"))


async def test_resolve_tags_reuses_existing(db):
    existing = await tag_service.create_tag(db, TagCreate(name="Python"))
    tags = await tag_service.resolve_tags(db, ["python", "PYTHON", "New Thing", "", "!!!"])
    assert [t.slug for t in tags] == ["python", "new-thing"]
    assert tags[0].id == existing.id


async def test_usage_follows_blog_tagging(db, alice, clock):
    await make_blog(db, alice, clock, title="one", tags=["go"])
    await make_blog(db, alice, clock, title="two", tags=["go", "rust"])
    go = await tag_service.get_tag_by_slug(db, "go")
    await db.refresh(go)
    assert go.usage_count == 2
    with pytest.raises(ConflictError):
        await tag_service.delete_tag(db, go.id)


async def test_popular_tags_threshold(db):
    busy = await tag_service.create_tag(db, TagCreate(name="Busy"))
    quiet = await tag_service.create_tag(db, TagCreate(name="Quiet"))
    busy.usage_count, quiet.usage_count = 11, 10
    await db.flush()
    popular = await tag_service.get_popular_tags(db, PARAMS)
    assert [t.slug for t in popular.items] == ["busy"]


async def test_update_and_delete_unused(db):
    tag = await tag_service.create_tag(db, TagCreate(name="Temp"))
    updated = await tag_service.update_tag(db, tag.id, TagUpdate(description="short lived", version=tag.version))
    assert updated.description == "short lived"
    await tag_service.delete_tag(db, tag.id)
    with pytest.raises(NotFoundError):
        await tag_service.get_tag(db, tag.id)


def test_update_rejects_null_name():
    with pytest.raises(SchemaError):
        TagUpdate(name=None)
    assert TagUpdate(description=None).model_dump(exclude_unset=True) == {"description": None}


async def test_list_tags_sorting(db):
    for name in ("beta", "alpha"):
        await tag_service.create_tag(db, TagCreate(name=name))
    page = await tag_service.list_tags(db, PageParams(sort="name", direction="asc"))
    assert [t.slug for t in page.items] == ["alpha", "beta"]
    with pytest.raises(ValidationError):
        await tag_service.list_tags(db, PageParams(sort="nope"))
