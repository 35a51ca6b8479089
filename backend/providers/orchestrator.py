import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from deps import config
from errors import AllProvidersFailed, NoProviderAvailable, ProviderError
from schemas import CostEstimate, LLMRequest, LLMResponse, ModelCapabilities, QueryType
from metrics.metrics import provider_requests_total
from .base import ProviderAdapter
from .usage import UsageTracker

logger = logging.getLogger(__name__)

BASE_SCORE = 10

# query type -> provider -> bonus; None is the default row
QUERY_TYPE_BONUS: Dict[Optional[QueryType], Dict[str, int]] = {
    QueryType.CODE_ASSISTANCE: {"openai": 15, "anthropic": 10, "google": 12},
    QueryType.CREATIVE_WRITING: {"anthropic": 15, "openai": 10, "google": 8},
    QueryType.MATH_PROBLEM: {"openai": 15, "anthropic": 12, "google": 12},
    QueryType.CONCEPT_EXPLANATION: {"anthropic": 15, "openai": 12, "google": 10},
    None: {"openai": 10, "anthropic": 8, "google": 6},
}

# Stronger guardrails for learners under 13
YOUNG_LEARNER_BONUS = {"anthropic": 5}
YOUNG_LEARNER_AGE = 13

# Larger context windows when the course brings many materials
LARGE_CONTEXT_BONUS = {"anthropic": 8, "google": 6, "openai": 5}
LARGE_CONTEXT_MATERIALS = 5


class ProviderOrchestrator:
    """Scores registered adapters per request and routes generation to them."""

    def __init__(self, adapters: List[ProviderAdapter] = None, usage: UsageTracker = None, timeout: float = None):
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)
        self.usage = usage or UsageTracker()
        self.timeout = timeout or config.PROVIDER_TIMEOUT_SECONDS

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.name] = adapter
        logger.info("provider %s registered (default model %s)", adapter.name, adapter.default_model)

    def unregister(self, name: str) -> None:
        if self._adapters.pop(name, None) is not None:
            logger.info("provider %s unregistered", name)

    def available_providers(self) -> List[str]:
        return list(self._adapters)

    def score(self, request: LLMRequest, name: str) -> int:
        score = BASE_SCORE
        row = QUERY_TYPE_BONUS.get(request.query_type, QUERY_TYPE_BONUS[None])
        score += row.get(name, 0)

        profile = request.learner_profile
        if profile and profile.age is not None and profile.age < YOUNG_LEARNER_AGE:
            score += YOUNG_LEARNER_BONUS.get(name, 0)

        course = request.course_context
        if course and len(course.materials) > LARGE_CONTEXT_MATERIALS:
            score += LARGE_CONTEXT_BONUS.get(name, 0)
        return score

    def ranked(self, request: LLMRequest) -> List[ProviderAdapter]:
        """Adapters best-first; sorted() is stable so ties keep registration order."""
        if not self._adapters:
            raise NoProviderAvailable("No LLM providers available")
        adapters = list(self._adapters.values())
        return sorted(adapters, key=lambda a: -self.score(request, a.name))

    def select_provider(self, request: LLMRequest) -> ProviderAdapter:
        return self.ranked(request)[0]

    def select_model(self, request: LLMRequest, adapter: ProviderAdapter) -> str:
        return adapter.select_model(request)

    async def _call(self, adapter: ProviderAdapter, request: LLMRequest) -> LLMResponse:
        model = self.select_model(request, adapter)
        logger.info("routing request %s to %s with model %s", request.id, adapter.name, model)
        try:
            response = await asyncio.wait_for(adapter.generate_response(request, model), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            provider_requests_total.labels(provider=adapter.name, status="timeout").inc()
            raise ProviderError(
                f"{adapter.name} timed out after {self.timeout}s", provider=adapter.name
            ) from e
        except ProviderError:
            provider_requests_total.labels(provider=adapter.name, status="error").inc()
            raise
        except Exception as e:
            provider_requests_total.labels(provider=adapter.name, status="error").inc()
            raise ProviderError(f"{adapter.name} failed: {e}", provider=adapter.name) from e

        provider_requests_total.labels(provider=adapter.name, status="ok").inc()
        self.usage.record(request, response)
        return response

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Top-scored adapter only."""
        return await self._call(self.select_provider(request), request)

    async def generate_with_failover(self, request: LLMRequest) -> LLMResponse:
        """Try adapters in score order, each at most once."""
        errors: List[Tuple[str, Exception]] = []
        for adapter in self.ranked(request):
            try:
                response = await self._call(adapter, request)
            except ProviderError as e:
                logger.warning("provider %s failed for request %s: %s", adapter.name, request.id, e)
                errors.append((adapter.name, e))
                continue
            if errors:
                logger.info("failover successful using provider %s", adapter.name)
            return response
        raise AllProvidersFailed(errors)

    def estimate_cost(self, request: LLMRequest) -> CostEstimate:
        adapter = self.select_provider(request)
        model = self.select_model(request, adapter)
        return CostEstimate(
            provider=adapter.name,
            model=model,
            estimated_cost=adapter.estimate_cost(request, model),
        )

    def all_capabilities(self) -> List[ModelCapabilities]:
        return [adapter.get_capabilities() for adapter in self._adapters.values()]

    async def provider_health(self) -> Dict[str, bool]:
        health = {}
        for name, adapter in self._adapters.items():
            try:
                health[name] = await asyncio.wait_for(adapter.validate_credential(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("credential check for %s timed out", name)
                health[name] = False
        return health

    async def prune_unavailable(self) -> List[str]:
        """Drop adapters whose credentials fail validation. Returns the removed names."""
        health = await self.provider_health()
        removed = [name for name, ok in health.items() if not ok]
        for name in removed:
            logger.warning("provider %s failed credential validation", name)
            self.unregister(name)
        return removed
