from fastapi import APIRouter
from pydantic import BaseModel

from neurofeed.models.profile import UserProfile
from neurofeed.services.pipeline import PipelineOrchestrator
from neurofeed.services.sessions import session_registry

router = APIRouter(tags=["profile"])


class ProfileView(BaseModel):
    profile: UserProfile
    feedback_count: int
    decay_enabled: bool


def profile_view(orchestrator: PipelineOrchestrator) -> ProfileView:
    state = orchestrator.state
    return ProfileView(
        profile=state.profile,
        feedback_count=state.feedback_count,
        decay_enabled=orchestrator.manager.can_decay(state.profile, state.feedback_count),
    )


@router.get("/{session_id}/profile", response_model=ProfileView)
async def get_profile(session_id: str) -> ProfileView:
    orchestrator = await session_registry.get_or_create(session_id)
    return profile_view(orchestrator)


@router.post("/{session_id}/profile/reset", response_model=ProfileView)
async def reset_profile(session_id: str) -> ProfileView:
    """Restore the default profile, clear history and the event log, re-rank."""
    orchestrator = await session_registry.get_or_create(session_id)
    await orchestrator.reset()
    return profile_view(orchestrator)
