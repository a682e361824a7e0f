"""Run the scheduled-publish sweep once, outside Celery beat."""
import asyncio
import os
import sys

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.clock import system_clock
from app.db.session import async_session_maker
from app.services.blog_service import publish_scheduled_blogs


async def main():
    async with async_session_maker() as session:
        published = await publish_scheduled_blogs(session, system_clock)
        await session.commit()
    print(f"Published {len(published)} scheduled blogs")
    for blog_id in published:
        print(f"  {blog_id}")


if __name__ == "__main__":
    asyncio.run(main())
