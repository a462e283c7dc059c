from typing import Any

from neurofeed.models.adjustment import IntentAnalysis
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile
from neurofeed.services.collaborators.base import Collaborator
from neurofeed.services.gemini import GeminiService, gemini_service


def item_context(post: Post, language: str = "en") -> str:
    return f"Title: {post.title.text(language)}, Tags: {', '.join(post.tags)}"


def build_intent_request(
    feedback: str, post: Post, profile: UserProfile, vocabulary: list[str], language: str = "en"
) -> dict[str, Any]:
    return {
        "feedback": feedback,
        "item_context": item_context(post, language),
        "profile": profile.serialize_tags(),
        "vocabulary": vocabulary,
    }


class IntentAnalyzer(Collaborator[IntentAnalysis]):
    """Turns free-text feedback into tag adjustments and an optional search phrase."""

    name = "intent_analyzer"
    response_model = IntentAnalysis


class GeminiIntentAnalyzer(IntentAnalyzer):
    def __init__(self, service: GeminiService | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service = service or gemini_service

    @staticmethod
    def get_prompt(payload: dict[str, Any]) -> str:
        interests = ", ".join(f"{t['tag']} ({t['weight']:.1f})" for t in payload["profile"]["interests"]) or "none"
        dislikes = ", ".join(f"{t['tag']} ({t['weight']:.1f})" for t in payload["profile"]["dislikes"]) or "none"
        return f"""
        You are a recommendation system alignment engine.

        The user gave feedback on a post.
        Post: "{payload['item_context']}"
        Feedback: "{payload['feedback']}"

        Current interests: {interests}
        Current dislikes: {dislikes}

        Available tags:
        {', '.join(payload['vocabulary'])}

        Rules:
        1. Target TOPIC tags (specific subjects such as Gaming, AI, Cars) rather than
           VIBE tags (Fun, Party, Discussion) unless the user names the vibe.
        2. Negative feedback adds weight to the topic in the dislike list; positive
           feedback adds weight to the topic in the interest list.
        3. Strong rejection ("hate this", "never show") deserves a large delta (8 to 10);
           dislikes strong enough combine with topic centrality into a veto.
        4. If the user wants one thing but hates another, emit both an interest and a
           dislike adjustment.
        5. Deltas are between -10 and 10. Prefer tags from the available list.
        6. If the user asks for something specific ("show me hiking"), put that
           request in search_query. Otherwise leave it empty.

        Return adjustments, a short note on the user's intent, and search_query.
        """

    async def request(self, payload: dict[str, Any]) -> str:
        return await self.service.generate_json_async(self.get_prompt(payload), IntentAnalysis, self.name)
