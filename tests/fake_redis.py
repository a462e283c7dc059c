from typing import Any


class FakeRedis:
    """
    In-process stand-in for the few redis.asyncio string commands the stores use.

    Set `fail = True` to simulate an outage; every command then raises
    ConnectionError, which RedisService treats like a Redis error.
    """

    def __init__(self):
        self._strings: dict[str, str] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("fake redis is down")

    async def get(self, key: str) -> str | None:
        self._check()
        return self._strings.get(key)

    async def set(self, key: str, value: Any) -> bool:
        self._check()
        self._strings[key] = str(value)
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self._strings.pop(key, None) is not None:
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True

    def keys(self) -> list[str]:
        return list(self._strings)

    async def ping(self) -> bool:
        self._check()
        return True
