# tests/conftest.py
import asyncio

import pytest

from neurofeed.core.exceptions import CollaboratorUnavailable, RateLimited
from neurofeed.models.post import LocalizedText, Post
from neurofeed.models.profile import UserProfile, WeightedTag
from neurofeed.services.collaborators import CleanupAdvisor, IntentAnalyzer, Reranker
from neurofeed.services.redis_service import RedisService

from .fake_redis import FakeRedis


class ScriptedMixin:
    """
    Collaborator double. Each call pops the next scripted answer: a dict or
    string is returned as the raw response, an exception is raised. The last
    answer repeats once the script runs out.
    """

    def __init__(self, *answers, delay: float = 0.0, backoff_seconds: float = 0.0):
        super().__init__(max_attempts=3, backoff_seconds=backoff_seconds)
        self.answers = list(answers) or [CollaboratorUnavailable(self.name, "no script")]
        self.delay = delay
        self.calls: list[dict] = []

    async def request(self, payload):
        self.calls.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeIntentAnalyzer(ScriptedMixin, IntentAnalyzer):
    pass


class FakeReranker(ScriptedMixin, Reranker):
    pass


class FakeCleanupAdvisor(ScriptedMixin, CleanupAdvisor):
    pass


def make_post(post_id: str, tags: list[str], likes: int = 0, weights: dict | None = None, title: str = "") -> Post:
    return Post(
        id=post_id,
        title=LocalizedText(en=title or f"Post {post_id}", zh=f"帖子 {post_id}"),
        tags=tags,
        tag_weights=weights or {},
        likes=likes,
    )


def make_profile(interests: dict | None = None, dislikes: dict | None = None, version: int = 0) -> UserProfile:
    return UserProfile(
        interests=[WeightedTag(tag=t, weight=w) for t, w in (interests or {}).items()],
        dislikes=[WeightedTag(tag=t, weight=w) for t, w in (dislikes or {}).items()],
        version=version,
    )


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def redis_backend(fake_redis):
    service = RedisService()
    service._client = fake_redis
    return service


@pytest.fixture()
def rate_limited():
    return RateLimited("test", "429 Too Many Requests")
