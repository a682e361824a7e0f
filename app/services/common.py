"""Helpers shared by the entity services: slugs, lookups, flush error mapping."""
from uuid import UUID

from slugify import slugify
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrencyError, ConflictError, NotFoundError, ValidationError


async def get_or_404(db: AsyncSession, model, entity_id: UUID, label: str | None = None):
    obj = await db.get(model, entity_id)
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def check_version(entity, expected_version: int | None) -> None:
    """Reject writes made against a stale read of ``entity``."""
    if expected_version is not None and expected_version != entity.version:
        raise ConcurrencyError(
            f"{type(entity).__name__} is at version {entity.version}, not {expected_version}"
        )


UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True for duplicate-key failures; NOT NULL, CHECK and FK failures are not conflicts."""
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    # sqlite reports constraint kinds only in the message
    return "UNIQUE constraint failed" in str(exc.orig)


async def flush(db: AsyncSession, conflict: str | None = None) -> None:
    """Flush, translating lock and constraint failures into domain errors."""
    try:
        await db.flush()
    except StaleDataError as exc:
        raise ConcurrencyError() from exc
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise ConflictError(conflict) from exc
        raise ValidationError(f"Constraint violated: {exc.orig}") from exc


async def unique_slug(
    db: AsyncSession,
    model,
    source: str,
    max_length: int = 100,
    exclude_id: UUID | None = None,
) -> str:
    """Slug for ``source``; collisions get ``-2``, ``-3``... appended."""
    base = slugify(source or "", max_length=max_length)
    if not base:
        raise ValidationError("Cannot derive a slug from an empty value")
    q = select(model.slug).where(model.slug.like(f"{base}%"))
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    taken = set((await db.execute(q)).scalars().all())
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


async def ensure_slug_free(db: AsyncSession, model, slug: str, exclude_id: UUID | None = None) -> str:
    slug = slugify(slug)
    if not slug:
        raise ValidationError("Slug must contain letters or digits")
    q = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        raise ConflictError(f"Slug '{slug}' is already in use")
    return slug
