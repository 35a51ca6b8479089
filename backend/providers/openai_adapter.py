import logging
import time
from typing import List, Optional

import httpx

from deps import config
from errors import ProviderError
from schemas import InputType, LLMRequest, LLMResponse, ModelCapabilities, QueryType
from .base import ProviderAdapter
from . import prompts

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"

MAX_TOKENS = {
    "gpt-3.5-turbo": 4096,
    "gpt-3.5-turbo-16k": 16384,
    "gpt-4": 8192,
    "gpt-4-32k": 32768,
    "gpt-4-turbo": 128000,
}

COST_PER_TOKEN = {
    "gpt-3.5-turbo": 0.000002,
    "gpt-3.5-turbo-16k": 0.000004,
    "gpt-4": 0.00003,
    "gpt-4-turbo": 0.00001,
}

LANGUAGES = ["en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh", "ar", "hi"]


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions over httpx."""

    name = "openai"

    def __init__(self, api_key: str = None, default_model: str = None, base_url: str = None, timeout: float = None):
        super().__init__(
            api_key or config.OPENAI_KEY,
            default_model or config.OPENAI_DEFAULT_MODEL,
            timeout,
        )
        self.base_url = base_url or OPENAI_BASE_URL

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def select_model(self, request: LLMRequest) -> str:
        if (
            request.query_type in (QueryType.CODE_ASSISTANCE, QueryType.PROBLEM_SOLVING)
            or request.input_type in (InputType.IMAGE, InputType.MULTIMODAL)
        ):
            return "gpt-4"
        if request.course_context and len(request.course_context.materials) > 10:
            return "gpt-3.5-turbo-16k"
        return "gpt-3.5-turbo"

    async def generate_response(self, request: LLMRequest, model: Optional[str] = None) -> LLMResponse:
        model = model or self.default_model
        started = time.time()
        payload = {
            "model": model,
            "messages": [{"role": "system", "content": prompts.build_system_prompt(request)}]
            + prompts.build_messages(request),
            "max_tokens": config.MAX_TOKENS,
            "temperature": config.TEMPERATURE,
            "presence_penalty": 0.1,
            "frequency_penalty": 0.1,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error("OpenAI API error: %s", e)
            raise ProviderError(f"OpenAI API error: {e}", provider=self.name) from e

        try:
            choice = data["choices"][0]
            text = choice["message"].get("content") or ""
            finish = choice.get("finish_reason") or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected OpenAI response shape: {e}", provider=self.name) from e

        tokens = (data.get("usage") or {}).get("total_tokens", 0)
        return self._build_response(request, text, model, finish, tokens, started)

    def get_capabilities(self, model: Optional[str] = None) -> ModelCapabilities:
        model = model or self.default_model
        return ModelCapabilities(
            provider=self.name,
            model=model,
            max_tokens=MAX_TOKENS.get(model, 4096),
            supports_images="vision" in model or "gpt-4" in model,
            supports_audio=False,
            supports_code=True,
            languages=LANGUAGES,
            specialties=[
                QueryType.GENERAL_QUESTION,
                QueryType.HOMEWORK_HELP,
                QueryType.CONCEPT_EXPLANATION,
                QueryType.PROBLEM_SOLVING,
                QueryType.CREATIVE_WRITING,
                QueryType.CODE_ASSISTANCE,
                QueryType.MATH_PROBLEM,
            ],
            cost_per_token=COST_PER_TOKEN.get(model, 0.000002),
            average_response_time_ms=2000,
        )

    async def _get_models(self) -> List[str]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}/models", headers=self._headers())
            response.raise_for_status()
            return [m["id"] for m in response.json().get("data", [])]

    async def validate_credential(self) -> bool:
        try:
            await self._get_models()
            return True
        except httpx.HTTPError as e:
            logger.warning("OpenAI credential check failed: %s", e)
            return False

    async def list_available_models(self) -> List[str]:
        try:
            return sorted(m for m in await self._get_models() if "gpt" in m)
        except httpx.HTTPError:
            return [self.default_model]
