from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from neurofeed.api.main import api_router
from neurofeed.core.constants import GEMINI_CREDENTIAL_NAME
from neurofeed.services.corpus import load_catalog
from neurofeed.services.credential_store import credential_store
from neurofeed.services.gemini import gemini_service
from neurofeed.services.redis_service import redis_service
from neurofeed.services.sessions import session_registry

from .config import settings
from .version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    session_registry.load(load_catalog(settings.CATALOG_PATH))

    # A key saved through the API wins over the environment
    stored_key = await credential_store.get(GEMINI_CREDENTIAL_NAME)
    if stored_key:
        gemini_service.configure(stored_key)

    yield

    try:
        await session_registry.wait_idle()
    except Exception as exc:
        logger.warning(f"Failed to drain pipeline tasks: {exc}")
    await redis_service.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Feedback-driven feed re-ranking",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
