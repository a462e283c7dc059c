from fastapi import APIRouter, HTTPException, Query

from neurofeed.models.pipeline import SystemLog
from neurofeed.services.sessions import session_registry

router = APIRouter(tags=["logs"])


@router.get("/{session_id}/logs", response_model=list[SystemLog])
async def get_logs(session_id: str, limit: int | None = Query(default=None, ge=1)) -> list[SystemLog]:
    """Newest entries last, as they were recorded."""
    orchestrator = session_registry.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return orchestrator.state.log.entries(limit)
