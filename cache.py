"""
Read-through cache for small, read-mostly lookups (shop details).

Two backends share the same get/set interface: Redis for deployments and an
in-process cachetools.TTLCache, selected with REDIS_URL=memory://.
"""

import json
import logging
import threading
from typing import Any, Optional

import redis
from cachetools import TTLCache

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"


class RedisCache:
    def __init__(self, client: redis.Redis, ttl: int):
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, ttl: int) -> "RedisCache":
        return cls(redis.Redis.from_url(url), ttl)

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self.client.setex(key, self.ttl, json.dumps(value, default=str))

    def close(self) -> None:
        self.client.close()


class MemoryCache:
    def __init__(self, ttl: int, maxsize: int = 128):
        self.ttl = ttl
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def close(self) -> None:
        with self._lock:
            self._entries.clear()


def create_cache(url: str, ttl: int):
    if url.startswith(MEMORY_URL):
        logger.info("Using in-process cache")
        return MemoryCache(ttl)
    logger.info("Using Redis cache")
    return RedisCache.from_url(url, ttl)


# what a cache backend may raise; callers treat these as a miss
CacheError = (redis.RedisError, ValueError)
