import asyncio
import logging
import time
from typing import List, Dict, Optional

import google.generativeai as genai

from deps import config
from errors import ProviderError
from schemas import LLMRequest, LLMResponse, ModelCapabilities, QueryType
from .base import ProviderAdapter
from . import prompts

logger = logging.getLogger(__name__)

GEMINI_PRO = "gemini-1.5-pro"
GEMINI_FLASH = "gemini-1.5-flash"

COST_PER_TOKEN = {
    GEMINI_PRO: 0.0000035,
    GEMINI_FLASH: 0.00000035,
}

_FINISH = {"STOP": "stop", "MAX_TOKENS": "length"}


def format_messages_for_gemini(messages: List[Dict[str, str]]) -> List[Dict]:
    """Ensure roles are Gemini-compatible."""
    formatted = []
    for msg in messages:
        role = msg.get("role", "user")
        if role == "assistant":
            role = "model"
        elif role == "system":
            continue
        formatted.append({"role": role, "parts": [{"text": msg.get("content", "")}]})
    return formatted


class GeminiAdapter(ProviderAdapter):
    """Google Gemini through the official google-generativeai SDK."""

    name = "google"

    def __init__(self, api_key: str = None, default_model: str = None, timeout: float = None):
        super().__init__(
            api_key or config.GOOGLE_API_KEY,
            default_model or config.GOOGLE_DEFAULT_MODEL,
            timeout,
        )
        genai.configure(api_key=self.api_key)

    def select_model(self, request: LLMRequest) -> str:
        if request.query_type in (QueryType.CODE_ASSISTANCE, QueryType.PROBLEM_SOLVING, QueryType.MATH_PROBLEM):
            return GEMINI_PRO
        if request.course_context and len(request.course_context.materials) > 10:
            return GEMINI_PRO
        return GEMINI_FLASH

    async def generate_response(self, request: LLMRequest, model: Optional[str] = None) -> LLMResponse:
        model_name = model or self.default_model
        started = time.time()

        try:
            model = genai.GenerativeModel(
                model_name=model_name,
                system_instruction=prompts.build_system_prompt(request),
            )
            response = await model.generate_content_async(
                format_messages_for_gemini(prompts.build_messages(request)),
                generation_config=genai.types.GenerationConfig(
                    temperature=config.TEMPERATURE,
                    max_output_tokens=config.MAX_TOKENS,
                    top_p=0.95,
                ),
            )
            # .text raises ValueError when the candidate was blocked
            text = response.text or ""
        except ValueError as e:
            raise ProviderError(f"Gemini returned no usable text: {e}", provider=self.name) from e
        except Exception as e:
            logger.error("Gemini SDK error: %s: %s", type(e).__name__, e)
            raise ProviderError(f"Gemini SDK error: {e}", provider=self.name) from e

        finish = ""
        if response.candidates:
            reason = response.candidates[0].finish_reason
            finish = _FINISH.get(getattr(reason, "name", str(reason)), "")

        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", 0) or 0
        return self._build_response(request, text, model_name, finish, tokens, started)

    def get_capabilities(self, model: Optional[str] = None) -> ModelCapabilities:
        model = model or self.default_model
        return ModelCapabilities(
            provider=self.name,
            model=model,
            max_tokens=1048576,
            supports_images=True,
            supports_audio=True,
            supports_code=True,
            languages=["en", "es", "fr", "de", "it", "pt", "ja", "ko", "zh", "hi"],
            specialties=[
                QueryType.GENERAL_QUESTION,
                QueryType.CONCEPT_EXPLANATION,
                QueryType.CODE_ASSISTANCE,
                QueryType.MATH_PROBLEM,
                QueryType.LANGUAGE_LEARNING,
            ],
            cost_per_token=COST_PER_TOKEN.get(model, COST_PER_TOKEN[GEMINI_FLASH]),
            average_response_time_ms=1500,
        )

    async def _list_models(self) -> List[str]:
        models = await asyncio.to_thread(lambda: list(genai.list_models()))
        return [
            m.name.split("/")[-1]
            for m in models
            if "generateContent" in getattr(m, "supported_generation_methods", [])
        ]

    async def validate_credential(self) -> bool:
        try:
            await self._list_models()
            return True
        except Exception as e:
            logger.warning("Gemini credential check failed: %s", e)
            return False

    async def list_available_models(self) -> List[str]:
        try:
            return sorted(await self._list_models())
        except Exception:
            return [self.default_model]
