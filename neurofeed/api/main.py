from fastapi import APIRouter

from .endpoints.credentials import router as credentials_router
from .endpoints.feed import router as feed_router
from .endpoints.feedback import router as feedback_router
from .endpoints.health import router as health_router
from .endpoints.logs import router as logs_router
from .endpoints.profile import router as profile_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "NeuroFeed API is running"}


api_router.include_router(health_router)
api_router.include_router(credentials_router)
api_router.include_router(feed_router)
api_router.include_router(feedback_router)
api_router.include_router(profile_router)
api_router.include_router(logs_router)
