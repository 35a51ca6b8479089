import time
from abc import ABC, abstractmethod
from typing import List, Optional

from deps import config
from schemas import LLMRequest, LLMResponse, ModelCapabilities, ResponseMetadata
from . import prompts


class ProviderAdapter(ABC):
    """Contract every LLM backend implements.

    Adapters raise ``errors.ProviderError`` for anything that goes wrong on the
    wire; the orchestrator owns timeouts and failover.
    """

    name: str = "base"

    def __init__(self, api_key: str, default_model: str, timeout: float = None):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout or config.PROVIDER_TIMEOUT_SECONDS

    @abstractmethod
    async def generate_response(self, request: LLMRequest, model: Optional[str] = None) -> LLMResponse:
        ...

    @abstractmethod
    def get_capabilities(self, model: Optional[str] = None) -> ModelCapabilities:
        ...

    @abstractmethod
    async def validate_credential(self) -> bool:
        ...

    async def list_available_models(self) -> List[str]:
        return [self.default_model]

    def select_model(self, request: LLMRequest) -> str:
        return self.default_model

    def estimate_cost(self, request: LLMRequest, model: Optional[str] = None) -> float:
        caps = self.get_capabilities(model or self.default_model)
        return prompts.estimate_cost(request.query, caps.cost_per_token)

    def _build_response(
        self,
        request: LLMRequest,
        text: str,
        model: str,
        finish: str,
        tokens_used: int,
        started: float,
    ) -> LLMResponse:
        """Shared post-processing: confidence, safety level, sources, follow-ups."""
        return LLMResponse(
            request_id=request.id,
            response=text,
            provider=self.name,
            model=model,
            confidence=prompts.confidence_from_finish(finish, text),
            safety_level=prompts.assess_safety_level(text),
            tokens_used=tokens_used,
            response_time_ms=int((time.time() - started) * 1000),
            metadata=ResponseMetadata(
                sources=prompts.extract_sources(request.course_context),
                suggested_follow_ups=prompts.follow_ups(request.query_type),
                escalation_recommended=prompts.recommends_escalation(text),
            ),
        )
