from typing import Any

from neurofeed.models.adjustment import CleanupResponse
from neurofeed.models.profile import UserProfile
from neurofeed.services.collaborators.base import Collaborator
from neurofeed.services.gemini import GeminiService, gemini_service


def build_cleanup_request(feedback_history: list[str], profile: UserProfile, history_size: int = 8) -> dict[str, Any]:
    return {
        "feedback_history": list(feedback_history[-history_size:]),
        "interests": [t.model_dump() for t in profile.interests],
    }


class CleanupAdvisor(Collaborator[CleanupResponse]):
    """Proposes decay for interests that recent feedback made stale or contradicted."""

    name = "cleanup"
    response_model = CleanupResponse


class GeminiCleanupAdvisor(CleanupAdvisor):
    def __init__(self, service: GeminiService | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service = service or gemini_service

    @staticmethod
    def get_prompt(payload: dict[str, Any]) -> str:
        history = "\n".join(f"- {text}" for text in payload["feedback_history"])
        interests = ", ".join(f"{t['tag']} ({t['weight']:.1f})" for t in payload["interests"])
        return f"""
        You maintain a user's interest profile.

        Recent feedback, oldest first:
        {history}

        Current interests: {interests}

        Suggest decay only for interests the recent feedback contradicts or has
        stopped mentioning for a long time. Each suggestion is a tag and a negative
        delta (at most 10 in magnitude). Leave healthy interests alone. An empty list
        is a fine answer. Explain briefly in rationale.
        """

    async def request(self, payload: dict[str, Any]) -> str:
        return await self.service.generate_json_async(self.get_prompt(payload), CleanupResponse, self.name)
