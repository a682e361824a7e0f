"""V1 API router aggregation."""
from fastapi import APIRouter

from app.api.v1.endpoints import auth, blogs, categories, comments, notifications, search, stats, tags, users

api_router = APIRouter(prefix="/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(blogs.router)
api_router.include_router(comments.router)
api_router.include_router(categories.router)
api_router.include_router(tags.router)
api_router.include_router(notifications.router)
api_router.include_router(search.router)
api_router.include_router(stats.router)
