"""Count + offset/limit pagination over SQLAlchemy selects."""
from collections.abc import Mapping

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.schemas.pagination import Page, PageParams, SortDirection


def apply_sort(stmt: Select, params: PageParams, sortable: Mapping[str, object], default=None) -> Select:
    """Order by a whitelisted key; ``default`` applies when no key was requested."""
    if params.sort:
        column = sortable.get(params.sort)
        if column is None:
            allowed = ", ".join(sorted(sortable))
            raise ValidationError(f"Cannot sort by '{params.sort}'. Allowed: {allowed}")
        ordering = column.asc() if params.direction == SortDirection.ASC else column.desc()
        return stmt.order_by(None).order_by(ordering)
    if default is not None:
        return stmt.order_by(*default) if isinstance(default, (list, tuple)) else stmt.order_by(default)
    return stmt


async def paginate(
    db: AsyncSession,
    stmt: Select,
    params: PageParams,
    sortable: Mapping[str, object] | None = None,
    default_order=None,
) -> Page:
    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    ordered = apply_sort(stmt, params, sortable or {}, default_order)
    result = await db.execute(ordered.offset(params.page * params.size).limit(params.size))
    return Page(items=list(result.scalars().all()), total=total or 0, page=params.page, size=params.size)
