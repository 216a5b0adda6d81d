"""Mock async Redis client for testing."""

from typing import Any


class MockRedis:
    """Dict-backed stand-in for ``redis.asyncio.Redis``.

    TTLs are recorded but never enforced.
    """

    instances: list["MockRedis"] = []

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False
        self.closed = False

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "MockRedis":
        instance = cls()
        cls.instances.append(instance)
        return instance

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def incr(self, key: str) -> int:
        self._check()
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    async def aclose(self) -> None:
        self.closed = True


class UnreachableRedis(MockRedis):
    """Redis whose connection check always fails."""

    async def ping(self) -> bool:
        raise ConnectionError("connection refused")
