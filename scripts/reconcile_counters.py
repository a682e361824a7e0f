"""Recompute every denormalized counter from the source rows and report drift.

Usage: python scripts/reconcile_counters.py [--cleanup-likes]
"""
import asyncio
import os
import sys

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import async_session_maker
from app.services import maintenance


async def reconcile(cleanup_likes: bool):
    async with async_session_maker() as session:
        orphans = await maintenance.find_orphaned_likes(session)
        print(f"Orphaned likes: {len(orphans)}")
        if cleanup_likes and orphans:
            removed = await maintenance.cleanup_orphaned_likes(session)
            print(f"Removed {removed} orphaned likes")
        drift = await maintenance.reconcile_counters(session)
        await session.commit()

    if not any(drift.values()):
        print("All counters consistent.")
        return
    for name, fixed in sorted(drift.items()):
        if fixed:
            print(f"  {name}: {fixed} rows corrected")


if __name__ == "__main__":
    asyncio.run(reconcile("--cleanup-likes" in sys.argv[1:]))
