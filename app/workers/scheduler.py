"""Periodic Celery tasks: the scheduled-publish sweep and counter reconciliation."""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.celery_app import celery_app
from app.core.clock import system_clock
from app.services import blog_service, maintenance
from app.workers.runtime import run_with_session

logger = logging.getLogger(__name__)


async def _publish_due(db: AsyncSession) -> list[str]:
    return [str(blog_id) for blog_id in await blog_service.publish_scheduled_blogs(db, system_clock)]


async def _reconcile(db: AsyncSession) -> dict[str, int]:
    drift = await maintenance.reconcile_counters(db)
    drift["likes.orphaned"] = await maintenance.cleanup_orphaned_likes(db)
    return drift


@celery_app.task(name="app.workers.scheduler.publish_scheduled_blogs", bind=True)
def publish_scheduled_blogs(self) -> dict[str, Any]:
    published = run_with_session(_publish_due)
    return {"status": "ok", "published": published}


@celery_app.task(name="app.workers.scheduler.reconcile_counters", bind=True)
def reconcile_counters(self) -> dict[str, Any]:
    drift = run_with_session(_reconcile)
    return {"status": "ok", "drift": drift}
