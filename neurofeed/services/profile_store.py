from loguru import logger
from pydantic import ValidationError

from neurofeed.core.config import settings
from neurofeed.models.profile import UserProfile
from neurofeed.services.redis_service import RedisService, redis_service


class ProfileStore:
    """Durable profile snapshots, one key per session."""

    KEY_PREFIX = settings.REDIS_PROFILE_KEY

    def __init__(self, backend: RedisService | None = None):
        self.backend = backend or redis_service

    def _format_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def load(self, session_id: str) -> UserProfile | None:
        raw = await self.backend.get(self._format_key(session_id))
        if not raw:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"[{session_id}] Discarding unreadable profile snapshot: {e}")
            return None

    async def save(self, session_id: str, profile: UserProfile) -> bool:
        saved = await self.backend.set(self._format_key(session_id), profile.model_dump_json())
        if saved:
            logger.debug(f"[{session_id}] Profile snapshot saved at v{profile.version}")
        return saved

    async def clear(self, session_id: str) -> bool:
        return await self.backend.delete(self._format_key(session_id))


profile_store = ProfileStore()
