from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from neurofeed.core.exceptions import StaleResult
from neurofeed.models.pipeline import PipelineRun
from neurofeed.services.pipeline import PipelineOrchestrator
from neurofeed.services.sessions import session_registry

from .feed import FeedPage, build_page

router = APIRouter(tags=["feedback"])


class FeedbackRequest(BaseModel):
    post_id: str = Field(description="The post the feedback is about")
    text: str = Field(min_length=1, description="Free-text reaction, any language")
    language: str = Field(default="en", description="Display language of the post the user saw")


class FeedbackResponse(BaseModel):
    run: PipelineRun
    feed: FeedPage


def _get_session(session_id: str) -> PipelineOrchestrator:
    orchestrator = session_registry.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return orchestrator


def _get_run(orchestrator: PipelineOrchestrator, run_id: str) -> PipelineRun:
    run = orchestrator.state.runs.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found.")
    return run


@router.post("/{session_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(session_id: str, payload: FeedbackRequest) -> FeedbackResponse:
    """
    Run the blocking part of a feedback cycle and return the hybrid candidate
    feed. Re-ranking and cleanup continue in the background; poll the run to
    see how they resolved.
    """
    orchestrator = await session_registry.get_or_create(session_id)
    post = orchestrator.post(payload.post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found.")
    run = await orchestrator.submit_feedback(payload.text.strip(), post, payload.language)
    return FeedbackResponse(run=run, feed=build_page(orchestrator))


@router.get("/{session_id}/runs/{run_id}", response_model=PipelineRun)
async def get_run(session_id: str, run_id: str) -> PipelineRun:
    return _get_run(_get_session(session_id), run_id)


@router.post("/{session_id}/runs/{run_id}/apply", response_model=FeedbackResponse)
async def apply_run(session_id: str, run_id: str) -> FeedbackResponse:
    """Confirm a re-rank that took too long to be applied automatically."""
    orchestrator = _get_session(session_id)
    _get_run(orchestrator, run_id)
    try:
        run = orchestrator.confirm(run_id)
    except StaleResult as e:
        logger.info(f"[{session_id}] Refusing stale rerank {run_id}: {e}")
        raise HTTPException(status_code=409, detail=f"Rerank is stale: {e}")
    return FeedbackResponse(run=run, feed=build_page(orchestrator))
