"""API routes and controllers for AudioQueue"""

from fastapi import APIRouter

from .health import router as health_router
from .queue import router as queue_router
from .resolve import router as resolve_router

# Create the main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["Health"])
api_router.include_router(resolve_router, tags=["Resolve"])
api_router.include_router(queue_router, tags=["Queue"])

__all__ = ["api_router"]
