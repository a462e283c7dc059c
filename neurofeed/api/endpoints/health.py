from fastapi import APIRouter

from neurofeed.core.config import APP_VERSION
from neurofeed.services.gemini import gemini_service
from neurofeed.services.redis_service import redis_service
from neurofeed.services.sessions import session_registry

router = APIRouter(tags=["health"])


@router.get("/health", summary="Simple readiness probe")
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "posts": len(session_registry.catalog),
        "sessions": len(session_registry),
        "storage": "ok" if await redis_service.ping() else "unavailable",
        "collaborators": "gemini" if gemini_service.enabled else "disabled",
    }
