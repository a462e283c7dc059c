from fastapi import APIRouter, Query
from pydantic import BaseModel

from neurofeed.models.post import Post
from neurofeed.services.pipeline import PipelineOrchestrator
from neurofeed.services.sessions import session_registry

router = APIRouter(tags=["feed"])


class FeedPage(BaseModel):
    page: int
    pages: int
    total: int
    version: int
    posts: list[Post]


def build_page(orchestrator: PipelineOrchestrator, page: int = 1) -> FeedPage:
    page_count = orchestrator.page_count()
    page = min(max(1, page), page_count)
    return FeedPage(
        page=page,
        pages=page_count,
        total=len(orchestrator.state.displayed),
        version=orchestrator.state.version,
        posts=orchestrator.page(page),
    )


@router.get("/{session_id}/feed", response_model=FeedPage)
async def get_feed(session_id: str, page: int = Query(default=1, ge=1)) -> FeedPage:
    orchestrator = await session_registry.get_or_create(session_id)
    return build_page(orchestrator, page)


@router.post("/{session_id}/feed/refresh", response_model=FeedPage)
async def refresh_feed(session_id: str) -> FeedPage:
    """Re-rank the whole catalog against the current profile."""
    orchestrator = await session_registry.get_or_create(session_id)
    orchestrator.refresh()
    return build_page(orchestrator)
