import asyncio
import logging
from typing import Dict, Optional

from deps import config
from errors import CacheUnavailable
from schemas import LLMRequest, LLMResponse, SafetyLevel
from metrics.metrics import cache_events_total
from .keys import all_pattern, cache_key, session_pattern, user_pattern
from .store import CacheStore, InMemoryCacheStore
from .ttl import calculate_ttl

logger = logging.getLogger(__name__)

_UNCACHEABLE = (SafetyLevel.HIGH, SafetyLevel.CRITICAL)


class ResponseCache:
    """LLM response cache. Store failures degrade to misses and no-ops."""

    def __init__(self, store: CacheStore = None, timeout: float = None, base_ttl: int = None):
        self.store = store or InMemoryCacheStore()
        self.timeout = timeout or config.CACHE_TIMEOUT_SECONDS
        self.base_ttl = base_ttl
        self.hits = 0
        self.misses = 0

    async def _bounded(self, op: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except (CacheUnavailable, asyncio.TimeoutError) as e:
            logger.warning("cache %s degraded: %s", op, str(e) or "timeout")
            cache_events_total.labels(event="error").inc()
            return None

    async def get(self, request: LLMRequest) -> Optional[LLMResponse]:
        raw = await self._bounded("get", self.store.get(cache_key(request)))
        if raw is None:
            self.misses += 1
            cache_events_total.labels(event="miss").inc()
            return None

        try:
            cached = LLMResponse.model_validate_json(raw)
        except ValueError as e:
            logger.warning("discarding unreadable cache entry for request %s: %s", request.id, e)
            self.misses += 1
            cache_events_total.labels(event="miss").inc()
            return None

        self.hits += 1
        cache_events_total.labels(event="hit").inc()
        logger.info("cache hit for request %s", request.id)
        return cached.model_copy(update={"cached": True})

    async def put(self, request: LLMRequest, response: LLMResponse) -> bool:
        """Store the response unless it is unsafe. Returns whether a write was attempted and succeeded."""
        if response.safety_level in _UNCACHEABLE or response.metadata.escalation_recommended:
            logger.debug("skipping cache for request %s due to safety/escalation concerns", request.id)
            cache_events_total.labels(event="skip").inc()
            return False

        ttl = calculate_ttl(request, response, self.base_ttl)
        payload = response.model_copy(update={"cached": False}).model_dump_json()
        key = cache_key(request)
        try:
            await asyncio.wait_for(self.store.set(key, payload, ttl), timeout=self.timeout)
        except (CacheUnavailable, asyncio.TimeoutError) as e:
            logger.warning("cache set degraded: %s", str(e) or "timeout")
            cache_events_total.labels(event="error").inc()
            return False

        cache_events_total.labels(event="write").inc()
        logger.debug("cached response for request %s with TTL %ss", request.id, ttl)
        return True

    async def invalidate(self, request: LLMRequest) -> int:
        return await self._bounded("delete", self.store.delete(cache_key(request))) or 0

    async def invalidate_user(self, user_id: str) -> int:
        return await self._bounded("delete_pattern", self.store.delete_pattern(user_pattern(user_id))) or 0

    async def invalidate_session(self, session_id: str) -> int:
        return await self._bounded("delete_pattern", self.store.delete_pattern(session_pattern(session_id))) or 0

    async def clear(self) -> int:
        return await self._bounded("delete_pattern", self.store.delete_pattern(all_pattern())) or 0

    async def healthy(self) -> bool:
        return bool(await self._bounded("ping", self.store.ping()))

    def stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
        }
