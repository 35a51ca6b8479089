import logging
import time
from typing import List, Optional

import httpx

from deps import config
from errors import ProviderError
from schemas import LLMRequest, LLMResponse, ModelCapabilities, QueryType
from .base import ProviderAdapter
from . import prompts

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"

SONNET = "claude-3-sonnet-20240229"
HAIKU = "claude-3-haiku-20240307"

KNOWN_MODELS = [
    "claude-3-opus-20240229",
    SONNET,
    HAIKU,
    "claude-2.1",
    "claude-2.0",
]

MAX_TOKENS = {
    "claude-3-opus-20240229": 200000,
    SONNET: 200000,
    HAIKU: 200000,
    "claude-2.1": 200000,
    "claude-2.0": 100000,
}

COST_PER_TOKEN = {
    "claude-3-opus-20240229": 0.000075,
    SONNET: 0.000015,
    HAIKU: 0.000001,
    "claude-2.1": 0.000024,
    "claude-2.0": 0.000024,
}

_FINISH = {"end_turn": "stop", "max_tokens": "length"}


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages API over httpx."""

    name = "anthropic"

    def __init__(self, api_key: str = None, default_model: str = None, base_url: str = None, timeout: float = None):
        super().__init__(
            api_key or config.ANTHROPIC_API_KEY,
            default_model or config.ANTHROPIC_DEFAULT_MODEL,
            timeout,
        )
        self.base_url = base_url or ANTHROPIC_BASE_URL

    def _headers(self):
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def select_model(self, request: LLMRequest) -> str:
        if request.query_type in (QueryType.CREATIVE_WRITING, QueryType.CONCEPT_EXPLANATION):
            return SONNET
        if request.query_type == QueryType.GENERAL_QUESTION:
            return HAIKU
        return SONNET

    async def _post_messages(self, payload) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/messages",
                headers=self._headers(),
                json=payload,
            )
            response.raise_for_status()
            return response.json()

    async def generate_response(self, request: LLMRequest, model: Optional[str] = None) -> LLMResponse:
        model = model or self.default_model
        started = time.time()
        payload = {
            "model": model,
            "max_tokens": config.MAX_TOKENS,
            "temperature": config.TEMPERATURE,
            "system": prompts.build_system_prompt(request),
            "messages": prompts.build_messages(request),
        }

        try:
            data = await self._post_messages(payload)
        except httpx.HTTPError as e:
            logger.error("Anthropic API error: %s", e)
            raise ProviderError(f"Anthropic API error: {e}", provider=self.name) from e

        blocks = data.get("content") or []
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        finish = _FINISH.get(data.get("stop_reason"), "")
        usage = data.get("usage") or {}
        tokens = usage.get("input_tokens", 0) + usage.get("output_tokens", 0)
        return self._build_response(request, text, model, finish, tokens, started)

    def get_capabilities(self, model: Optional[str] = None) -> ModelCapabilities:
        model = model or self.default_model
        return ModelCapabilities(
            provider=self.name,
            model=model,
            max_tokens=MAX_TOKENS.get(model, 200000),
            supports_images="claude-3" in model,
            supports_audio=False,
            supports_code=True,
            languages=["en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh"],
            specialties=[
                QueryType.GENERAL_QUESTION,
                QueryType.HOMEWORK_HELP,
                QueryType.CONCEPT_EXPLANATION,
                QueryType.PROBLEM_SOLVING,
                QueryType.CREATIVE_WRITING,
                QueryType.CODE_ASSISTANCE,
                QueryType.MATH_PROBLEM,
                QueryType.LANGUAGE_LEARNING,
            ],
            cost_per_token=COST_PER_TOKEN.get(model, 0.000015),
            average_response_time_ms=2500,
        )

    async def validate_credential(self) -> bool:
        # Smallest possible request
        try:
            await self._post_messages({
                "model": HAIKU,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "test"}],
            })
            return True
        except httpx.HTTPError as e:
            logger.warning("Anthropic credential check failed: %s", e)
            return False

    async def list_available_models(self) -> List[str]:
        return list(KNOWN_MODELS)
