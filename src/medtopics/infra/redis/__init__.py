"""Redis infrastructure for medtopics (optional)."""

from medtopics.infra.redis.cache import RedisEpochCache
from medtopics.infra.redis.client import RedisClient

__all__ = ["RedisClient", "RedisEpochCache"]
