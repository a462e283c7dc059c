from typing import Any

import redis.asyncio as redis
from loguru import logger

from neurofeed.core.config import settings

StorageError = (redis.RedisError, OSError)


class RedisService:
    """
    Durable key-value store for profile snapshots and credentials.

    Only plain string get/set/delete is needed. Storage is advisory: a failed
    command is logged and reported as a falsy result, never raised, so an outage
    degrades persistence without stopping a feedback cycle.
    """

    def __init__(self, url: str | None = None, max_connections: int | None = None) -> None:
        self.url = url or settings.REDIS_URL
        self.max_connections = max_connections or settings.REDIS_MAX_CONNECTIONS
        self._client: redis.Redis | None = None
        if not self.url:
            logger.warning("REDIS_URL is not set. Profiles and credentials will not survive a restart.")

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info(f"Connecting to Redis (max {self.max_connections} connections)")
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=self.max_connections,
                health_check_interval=30,
            )
        return self._client

    async def set(self, key: str, value: Any) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.set(key, str(value)))
        except StorageError as exc:
            logger.error(f"[REDIS] SET {key} failed: {exc}")
            return False

    async def get(self, key: str) -> str | None:
        """Value for `key`, or None when it is missing or Redis is unreachable."""
        try:
            client = await self.get_client()
            return await client.get(key)
        except StorageError as exc:
            logger.error(f"[REDIS] GET {key} failed: {exc}")
            return None

    async def delete(self, key: str) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.delete(key))
        except StorageError as exc:
            logger.error(f"[REDIS] DEL {key} failed: {exc}")
            return False

    async def ping(self) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.ping())
        except StorageError as exc:
            logger.warning(f"[REDIS] PING failed: {exc}")
            return False

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("Redis client closed")
        except StorageError as exc:
            logger.warning(f"Failed to close Redis client: {exc}")
        finally:
            self._client = None


redis_service = RedisService()
