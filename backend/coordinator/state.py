import logging
from dataclasses import dataclass

from deps import Config, config as default_config
from escalation.engine import EscalationEngine
from escalation.notifications import NotificationDispatcher, default_channels
from escalation.rules import load_rules
from moderation.pipeline import ModerationPipeline
from policy.engine import PolicyEngine
from providers.anthropic_adapter import AnthropicAdapter
from providers.gemini_adapter import GeminiAdapter
from providers.openai_adapter import OpenAIAdapter
from providers.orchestrator import ProviderOrchestrator
from response_cache.cache import ResponseCache
from response_cache.store import InMemoryCacheStore, RedisCacheStore

logger = logging.getLogger(__name__)


@dataclass
class GatewayState:
    """Everything a request needs, built once at startup and passed around explicitly."""
    orchestrator: ProviderOrchestrator
    cache: ResponseCache
    moderation: ModerationPipeline
    escalation: EscalationEngine


def build_gateway(cfg: Config = default_config) -> GatewayState:
    adapters = []
    if cfg.OPENAI_KEY:
        adapters.append(OpenAIAdapter(cfg.OPENAI_KEY, cfg.OPENAI_DEFAULT_MODEL, timeout=cfg.PROVIDER_TIMEOUT_SECONDS))
    if cfg.ANTHROPIC_API_KEY:
        adapters.append(AnthropicAdapter(cfg.ANTHROPIC_API_KEY, cfg.ANTHROPIC_DEFAULT_MODEL, timeout=cfg.PROVIDER_TIMEOUT_SECONDS))
    if cfg.GOOGLE_API_KEY:
        adapters.append(GeminiAdapter(cfg.GOOGLE_API_KEY, cfg.GOOGLE_DEFAULT_MODEL, timeout=cfg.PROVIDER_TIMEOUT_SECONDS))
    if not adapters:
        logger.warning("no provider credentials configured; /ask will answer 503")

    if cfg.REDIS_URL:
        store = RedisCacheStore(cfg.REDIS_URL)
    else:
        store = InMemoryCacheStore(cfg.CACHE_MAX_ITEMS)

    return GatewayState(
        orchestrator=ProviderOrchestrator(adapters, timeout=cfg.PROVIDER_TIMEOUT_SECONDS),
        cache=ResponseCache(store, timeout=cfg.CACHE_TIMEOUT_SECONDS, base_ttl=cfg.RESPONSE_CACHE_TTL),
        moderation=ModerationPipeline(PolicyEngine(cfg.POLICY_FILE)),
        escalation=EscalationEngine(
            rules=load_rules(cfg.ESCALATION_RULES_FILE),
            dispatcher=NotificationDispatcher(
                default_channels(cfg.NOTIFICATION_WEBHOOK_URL),
                timeout=cfg.NOTIFICATION_TIMEOUT_SECONDS,
            ),
            enabled=cfg.ESCALATION_ENABLED,
            threshold=cfg.ESCALATION_THRESHOLD,
        ),
    )
