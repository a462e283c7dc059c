import asyncio

from cachetools import TTLCache
from loguru import logger

from neurofeed.core.config import settings

from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile, default_profile
from neurofeed.services.collaborators import (
    CleanupAdvisor,
    GeminiCleanupAdvisor,
    GeminiIntentAnalyzer,
    GeminiReranker,
    IntentAnalyzer,
    Reranker,
)
from neurofeed.services.pipeline import PipelineOrchestrator
from neurofeed.services.profile_store import ProfileStore, profile_store
from neurofeed.services.session import SessionState
from neurofeed.services.tags import TagIndex


class SessionRegistry:
    """
    One orchestrator per session id, created lazily.

    A new session starts from its saved profile snapshot when one exists, the
    default profile otherwise, and gets an initial full-catalog ranking.
    Idle sessions expire after `session_ttl` seconds and the least recently
    used one is dropped past `max_sessions`; either way the next request
    resumes from the saved snapshot.
    """

    def __init__(
        self,
        store: ProfileStore | None = None,
        intent_analyzer: IntentAnalyzer | None = None,
        reranker: Reranker | None = None,
        cleanup_advisor: CleanupAdvisor | None = None,
        max_sessions: int = settings.SESSION_CACHE_SIZE,
        session_ttl: int = settings.SESSION_TTL_SECONDS,
    ):
        self.store = store or profile_store
        self.intent_analyzer = intent_analyzer or GeminiIntentAnalyzer()
        self.reranker = reranker or GeminiReranker()
        self.cleanup_advisor = cleanup_advisor or GeminiCleanupAdvisor()
        self.catalog: list[Post] = []
        self.tag_index = TagIndex([])
        self._sessions: TTLCache = TTLCache(maxsize=max_sessions, ttl=session_ttl)
        self._lock = asyncio.Lock()

    def load(self, catalog: list[Post]) -> None:
        self.catalog = catalog
        self.tag_index = TagIndex(catalog)
        self._sessions.clear()
        # Bound to whichever event loop serves the next requests
        self._lock = asyncio.Lock()
        logger.info(f"Session registry ready: {len(catalog)} posts, {len(self.tag_index)} distinct tags")

    def get(self, session_id: str) -> PipelineOrchestrator | None:
        return self._sessions.get(session_id)

    async def get_or_create(self, session_id: str) -> PipelineOrchestrator:
        async with self._lock:
            orchestrator = self._sessions.get(session_id)
            if orchestrator is not None:
                # Re-insert so an active session keeps its TTL fresh
                self._sessions[session_id] = orchestrator
                return orchestrator

            saved = await self.store.load(session_id)
            profile = saved or default_profile()
            orchestrator = PipelineOrchestrator(
                state=SessionState(session_id=session_id, profile=profile),
                catalog=self.catalog,
                intent_analyzer=self.intent_analyzer,
                reranker=self.reranker,
                cleanup_advisor=self.cleanup_advisor,
                tag_index=self.tag_index,
                on_profile_change=self._save_profile,
            )
            orchestrator.refresh("Initial content load")
            self._sessions[session_id] = orchestrator
            logger.info(
                f"[{session_id}] Session created from {'saved snapshot' if saved else 'default profile'} "
                f"(v{profile.version})"
            )
            return orchestrator

    async def _save_profile(self, session_id: str, profile: UserProfile) -> None:
        await self.store.save(session_id, profile)

    async def wait_idle(self) -> None:
        await asyncio.gather(*(o.wait_idle() for o in list(self._sessions.values())))

    def __len__(self) -> int:
        return len(self._sessions)


session_registry = SessionRegistry()
