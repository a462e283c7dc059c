from typing import Any

from neurofeed.models.adjustment import RerankResponse
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile
from neurofeed.services.collaborators.base import Collaborator
from neurofeed.services.gemini import GeminiService, gemini_service


def build_rerank_request(
    candidates: list[Post], profile: UserProfile, intent: str | None = None, interest_count: int = 5
) -> dict[str, Any]:
    return {
        "candidates": [{"id": post.id, "title": post.title.text("en")} for post in candidates],
        "interests": [t.tag for t in profile.top_interests(interest_count)],
        "intent": intent,
    }


def reconcile_order(candidate_ids: list[str], proposed_ids: list[str] | None) -> list[str]:
    """
    Force a proposed ordering into a permutation of the candidates.

    Unknown and repeated ids are dropped; candidates the proposal left out are
    appended in their original order. No proposal means the original order.
    """
    if not proposed_ids:
        return list(candidate_ids)
    known = set(candidate_ids)
    ordered: list[str] = []
    seen: set[str] = set()
    for post_id in proposed_ids:
        if post_id in known and post_id not in seen:
            ordered.append(post_id)
            seen.add(post_id)
    ordered.extend(post_id for post_id in candidate_ids if post_id not in seen)
    return ordered


class Reranker(Collaborator[RerankResponse]):
    """Reorders a candidate set. Must return the same ids, each exactly once."""

    name = "reranker"
    response_model = RerankResponse


class GeminiReranker(Reranker):
    def __init__(self, service: GeminiService | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service = service or gemini_service

    @staticmethod
    def get_prompt(payload: dict[str, Any]) -> str:
        lines = "\n".join(f"- {c['id']}: {c['title']}" for c in payload["candidates"])
        intent = payload.get("intent") or "none"
        return f"""
        You are a feed re-ranking engine.
        Order the posts below from most to least relevant for this user.

        Top interests: {', '.join(payload['interests']) or 'none'}
        Explicit request: {intent}

        Posts:
        {lines}

        If there is an explicit request, posts satisfying it come first, then the
        ones matching the interests. Return every id exactly once in ordered_ids.
        """

    async def request(self, payload: dict[str, Any]) -> str:
        return await self.service.generate_json_async(self.get_prompt(payload), RerankResponse, self.name)
