"""Category tree business logic.

Rows fetched with recursive CTEs are turned into ``{id: parent_id}``
indexes and walked with ``app.services.hierarchy``.
"""
import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.category import DEFAULT_CATEGORY_COLOR, Category
from app.schemas.category import CategoryCreate, CategoryStats, CategoryTreeNode, CategoryUpdate
from app.services import counters, hierarchy
from app.services.common import check_version, ensure_slug_free, flush, get_or_404, unique_slug

logger = logging.getLogger(__name__)


def _sibling_key(cat: Category):
    return (cat.sort_order is None, cat.sort_order or 0, cat.name.lower())


def _lineage_cte(category_id: UUID):
    """The node and every ancestor above it."""
    lineage = (
        select(Category.id, Category.parent_id, Category.name, Category.color)
        .where(Category.id == category_id)
        .cte("lineage", recursive=True)
    )
    parent = aliased(Category)
    return lineage.union(
        select(parent.id, parent.parent_id, parent.name, parent.color).where(parent.id == lineage.c.parent_id)
    )


def _subtree_cte(category_id: UUID):
    """The node and every descendant below it. UNION stops on cyclic rows."""
    tree = select(Category.id, Category.parent_id).where(Category.id == category_id).cte("subtree", recursive=True)
    child = aliased(Category)
    return tree.union(select(child.id, child.parent_id).where(child.parent_id == tree.c.id))


async def _lineage_rows(db: AsyncSession, category_id: UUID) -> dict:
    cte = _lineage_cte(category_id)
    rows = (await db.execute(select(cte))).all()
    return {row.id: row for row in rows}


async def get_category(db: AsyncSession, category_id: UUID) -> Category:
    return await get_or_404(db, Category, category_id, "Category")


async def get_category_by_slug(db: AsyncSession, slug: str) -> Category:
    result = await db.execute(select(Category).where(Category.slug == slug))
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError(f"Category '{slug}' not found")
    return category


async def list_categories(db: AsyncSession, active_only: bool = True) -> list[Category]:
    q = select(Category)
    if active_only:
        q = q.where(Category.is_active.is_(True))
    rows = list((await db.execute(q)).scalars().all())
    rows.sort(key=_sibling_key)
    return rows


async def get_root_categories(db: AsyncSession) -> list[Category]:
    rows = (await db.execute(select(Category).where(Category.parent_id.is_(None)))).scalars().all()
    return sorted(rows, key=_sibling_key)


async def get_children(db: AsyncSession, category_id: UUID) -> list[Category]:
    await get_category(db, category_id)
    rows = (await db.execute(select(Category).where(Category.parent_id == category_id))).scalars().all()
    return sorted(rows, key=_sibling_key)


async def create_category(db: AsyncSession, data: CategoryCreate, principal: str | None = None) -> Category:
    if data.parent_id is not None:
        await get_category(db, data.parent_id)
    if data.slug:
        slug = await ensure_slug_free(db, Category, data.slug)
    else:
        slug = await unique_slug(db, Category, data.name, max_length=120)
    category = Category(
        name=data.name,
        slug=slug,
        description=data.description,
        color=data.color,
        icon=data.icon,
        sort_order=data.sort_order,
        parent_id=data.parent_id,
    )
    category.stamp(principal)
    db.add(category)
    await flush(db, f"Category slug '{slug}' already exists")
    logger.info("Created category %s (%s)", category.slug, category.id)
    return category


async def update_category(
    db: AsyncSession,
    category_id: UUID,
    data: CategoryUpdate,
    principal: str | None = None,
) -> Category:
    category = await get_category(db, category_id)
    check_version(category, data.version)
    changes = data.model_dump(exclude_unset=True, exclude={"version", "slug"})
    for field, value in changes.items():
        setattr(category, field, value)
    if data.slug is not None and data.slug != category.slug:
        category.slug = await ensure_slug_free(db, Category, data.slug, exclude_id=category.id)
    category.stamp(principal)
    await flush(db, "Category slug already exists")
    return category


async def delete_category(db: AsyncSession, category_id: UUID) -> None:
    """Delete a leaf category that holds no blogs."""
    category = await get_category(db, category_id)
    has_children = await db.scalar(select(func.count(Category.id)).where(Category.parent_id == category_id))
    if has_children:
        raise ConflictError("Category has subcategories; move or delete them first")
    if category.blog_count:
        raise ConflictError("Category still has blogs assigned")
    await db.delete(category)
    await flush(db)


async def get_ancestors(db: AsyncSession, category_id: UUID) -> list[Category]:
    """Ancestors ordered root first, immediate parent last."""
    await get_category(db, category_id)
    rows = await _lineage_rows(db, category_id)
    chain = hierarchy.ancestors({k: r.parent_id for k, r in rows.items()}, category_id)
    if not chain:
        return []
    loaded = {c.id: c for c in (await db.execute(select(Category).where(Category.id.in_(chain)))).scalars()}
    return [loaded[k] for k in chain]


async def get_lineage_ids(db: AsyncSession, category_id: UUID) -> list[UUID]:
    rows = await _lineage_rows(db, category_id)
    return hierarchy.ancestors({k: r.parent_id for k, r in rows.items()}, category_id)


async def _lock_lineages(db: AsyncSession, category_ids: list[UUID]) -> dict[UUID, list[UUID]]:
    """Row-lock the given categories and all their ancestors; return each lineage.

    Locks are taken in id order in one statement so concurrent movers and
    counters cannot deadlock. A lineage that changed while we waited (a
    concurrent move committed) is re-read and locked again.
    """
    lineages = {k: await get_lineage_ids(db, k) for k in category_ids}
    while True:
        ids = {*category_ids, *(a for chain in lineages.values() for a in chain)}
        await db.execute(select(Category.id).where(Category.id.in_(ids)).order_by(Category.id).with_for_update())
        current = {k: await get_lineage_ids(db, k) for k in category_ids}
        if current == lineages:
            return lineages
        lineages = current


async def get_depth_level(db: AsyncSession, category_id: UUID) -> int:
    """Root categories are at depth 0."""
    await get_category(db, category_id)
    return len(await get_lineage_ids(db, category_id))


async def get_subtree_ids(db: AsyncSession, category_id: UUID) -> list[UUID]:
    cte = _subtree_cte(category_id)
    return list((await db.execute(select(cte.c.id))).scalars().all())


async def get_all_descendants(db: AsyncSession, category_id: UUID) -> list[Category]:
    """Every category below ``category_id``, pre-order, siblings by sort order then name."""
    await get_category(db, category_id)
    ids = await get_subtree_ids(db, category_id)
    rows = {c.id: c for c in (await db.execute(select(Category).where(Category.id.in_(ids)))).scalars()}
    parents = {k: c.parent_id for k, c in rows.items() if k != category_id}
    children = hierarchy.children_index(parents, sort_key=lambda k: _sibling_key(rows[k]))
    return [rows[k] for k in hierarchy.descendants(children, category_id)]


async def get_total_blog_count(db: AsyncSession, category_id: UUID) -> int:
    """Sum of direct blog counts over the node and all its descendants."""
    await get_category(db, category_id)
    cte = _subtree_cte(category_id)
    total = await db.scalar(
        select(func.coalesce(func.sum(Category.blog_count), 0)).where(Category.id.in_(select(cte.c.id)))
    )
    return int(total or 0)


async def get_effective_color(db: AsyncSession, category_id: UUID) -> str:
    """Nearest colour set on the node or an ancestor."""
    await get_category(db, category_id)
    rows = await _lineage_rows(db, category_id)
    return hierarchy.nearest_defined(
        {k: r.parent_id for k, r in rows.items()},
        {k: r.color for k, r in rows.items()},
        category_id,
        DEFAULT_CATEGORY_COLOR,
    )


async def get_full_path(db: AsyncSession, category_id: UUID) -> str:
    category = await get_category(db, category_id)
    rows = await _lineage_rows(db, category_id)
    chain = hierarchy.ancestors({k: r.parent_id for k, r in rows.items()}, category_id)
    return " > ".join([*(rows[k].name for k in chain), category.name])


async def get_category_stats(db: AsyncSession, category_id: UUID) -> CategoryStats:
    rows = await _lineage_rows(db, category_id)
    if category_id not in rows:
        await get_category(db, category_id)
    parents = {k: r.parent_id for k, r in rows.items()}
    chain = hierarchy.ancestors(parents, category_id)
    return CategoryStats(
        id=category_id,
        depth=len(chain),
        full_path=" > ".join(rows[k].name for k in [*chain, category_id]),
        effective_color=hierarchy.nearest_defined(
            parents, {k: r.color for k, r in rows.items()}, category_id, DEFAULT_CATEGORY_COLOR
        ),
        total_blog_count=await get_total_blog_count(db, category_id),
    )


async def get_category_tree(db: AsyncSession, active_only: bool = True) -> list[CategoryTreeNode]:
    """All categories as nested trees under their roots."""
    cats = {c.id: c for c in await list_categories(db, active_only=active_only)}
    # children of an inactive or missing parent are shown as roots
    parents = {k: (c.parent_id if c.parent_id in cats else None) for k, c in cats.items()}
    children = hierarchy.children_index(parents, sort_key=lambda k: _sibling_key(cats[k]))
    colors = {k: c.color for k, c in cats.items()}

    def make(key, kids):
        c = cats[key]
        return CategoryTreeNode(
            id=c.id,
            name=c.name,
            slug=c.slug,
            color=hierarchy.nearest_defined(parents, colors, key, DEFAULT_CATEGORY_COLOR),
            blog_count=c.blog_count,
            subtree_blog_count=c.subtree_blog_count,
            children=kids,
        )

    return hierarchy.build_forest(children.get(None, []), children, make)


async def move_category(
    db: AsyncSession,
    category_id: UUID,
    new_parent_id: UUID | None,
    principal: str | None = None,
) -> Category:
    """Reparent a category. Moving under itself or a descendant is rejected."""
    category = await get_category(db, category_id)
    if new_parent_id == category.parent_id:
        return category
    if new_parent_id is not None:
        await get_category(db, new_parent_id)
    lineages = await _lock_lineages(db, [category_id, *([new_parent_id] if new_parent_id else [])])
    if new_parent_id is not None and (new_parent_id == category_id or category_id in lineages[new_parent_id]):
        raise ValidationError("Cannot move a category under itself or one of its descendants")
    old_lineage = lineages[category_id]
    new_lineage = [*lineages[new_parent_id], new_parent_id] if new_parent_id else []
    await counters.carry_category_subtree(db, category_id, old_lineage, new_lineage)
    await db.refresh(category)
    category.parent_id = new_parent_id
    category.stamp(principal)
    await flush(db)
    logger.info("Moved category %s under %s", category_id, new_parent_id)
    return category


async def add_child(db: AsyncSession, parent_id: UUID, child_id: UUID, principal: str | None = None) -> Category:
    if parent_id == child_id:
        raise ValidationError("A category cannot be its own parent")
    return await move_category(db, child_id, parent_id, principal)


async def remove_child(db: AsyncSession, parent_id: UUID, child_id: UUID, principal: str | None = None) -> Category:
    """Detach ``child_id`` from ``parent_id``, making it a root."""
    child = await get_category(db, child_id)
    if child.parent_id != parent_id:
        raise ValidationError("Category is not a child of the given parent")
    return await move_category(db, child_id, None, principal)


async def increment_blog_count(db: AsyncSession, category_id: UUID) -> None:
    lineage = (await _lock_lineages(db, [category_id]))[category_id]
    await counters.increment_category_blogs(db, category_id, lineage)


async def decrement_blog_count(db: AsyncSession, category_id: UUID) -> None:
    lineage = (await _lock_lineages(db, [category_id]))[category_id]
    await counters.decrement_category_blogs(db, category_id, lineage)
