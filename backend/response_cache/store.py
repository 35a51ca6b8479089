import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from deps import config
from errors import CacheUnavailable

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Key/value store with per-key TTL. Implementations raise CacheUnavailable when unreachable."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> int:
        ...

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class InMemoryCacheStore(CacheStore):
    """Bounded LRU dict; entries expire passively on read."""

    def __init__(self, max_items: int = None, clock: Callable[[], float] = time.monotonic):
        self.max_items = max_items or config.CACHE_MAX_ITEMS
        self._clock = clock
        self._data: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    def __len__(self):
        return len(self._data)

    async def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= self._clock():
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = (value, self._clock() + ttl)
        while len(self._data) > self.max_items:
            self._data.popitem(last=False)

    async def delete(self, key: str) -> int:
        return 1 if self._data.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        keys = [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
        for k in keys:
            del self._data[k]
        return len(keys)


class RedisCacheStore(CacheStore):
    def __init__(self, url: str = None, client: redis.Redis = None):
        self.redis = client or redis.from_url(url or config.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except RedisError as e:
            raise CacheUnavailable(f"Redis get failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.redis.set(key, value, ex=ttl)
        except RedisError as e:
            raise CacheUnavailable(f"Redis set failed: {e}") from e

    async def delete(self, key: str) -> int:
        try:
            return await self.redis.delete(key)
        except RedisError as e:
            raise CacheUnavailable(f"Redis delete failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern, count=500)]
            if not keys:
                return 0
            return await self.redis.delete(*keys)
        except RedisError as e:
            raise CacheUnavailable(f"Redis pattern delete failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    async def close(self) -> None:
        await self.redis.aclose()
