import asyncio
import time

import pytest

from errors import ProviderError, NotificationError
from escalation.engine import EscalationEngine
from escalation.notifications import NotificationChannel, NotificationDispatcher, CHANNEL_NAMES
from escalation.rules import default_rules
from moderation.pipeline import ModerationPipeline
from policy.engine import PolicyEngine
from providers.base import ProviderAdapter
from providers.orchestrator import ProviderOrchestrator
from response_cache.cache import ResponseCache
from response_cache.store import InMemoryCacheStore
from coordinator.request_coordinator import RequestCoordinator
from coordinator.state import GatewayState
from schemas import LLMRequest, ModelCapabilities


PHOTOSYNTHESIS_ANSWER = (
    "Photosynthesis is the process plants use to convert light energy into chemical energy. "
    "For example, leaves capture sunlight and turn water and carbon dioxide into sugar."
)


class FakeAdapter(ProviderAdapter):
    """In-process adapter that records calls and can be told to fail or stall."""

    def __init__(self, name="openai", text=PHOTOSYNTHESIS_ANSWER, fail=False, delay=0.0, finish="stop"):
        super().__init__(api_key="test-key", default_model=f"{name}-model", timeout=5)
        self.name = name
        self.text = text
        self.fail = fail
        self.delay = delay
        self.finish = finish
        self.calls = []

    async def generate_response(self, request, model=None):
        self.calls.append(model)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderError(f"{self.name} is down", provider=self.name)
        return self._build_response(request, self.text, model or self.default_model, self.finish, 42, time.time())

    def get_capabilities(self, model=None):
        return ModelCapabilities(
            provider=self.name,
            model=model or self.default_model,
            max_tokens=4096,
            cost_per_token=0.000002,
        )

    async def validate_credential(self):
        return not self.fail


class RecordingChannel(NotificationChannel):
    def __init__(self, name, fail=False, delay=0.0):
        super().__init__(name)
        self.fail = fail
        self.delay = delay
        self.sent = []

    async def send(self, notification):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise NotificationError(f"{self.name} unavailable")
        self.sent.append(notification)


class BrokenChannel(NotificationChannel):
    """Channel whose delivery library fails with something other than NotificationError."""

    async def send(self, notification):
        raise RuntimeError("smtp library bug")


def build_request(query="How does photosynthesis work?", **kwargs):
    kwargs.setdefault("user_id", "student-1")
    kwargs.setdefault("session_id", "session-1")
    return LLMRequest(query=query, **kwargs)


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def channels():
    return {name: RecordingChannel(name) for name in CHANNEL_NAMES}


@pytest.fixture
def escalation_engine(channels):
    return EscalationEngine(
        rules=default_rules(),
        dispatcher=NotificationDispatcher(channels, timeout=1.0),
        enabled=True,
        threshold=0.8,
    )


@pytest.fixture
def pipeline():
    return ModerationPipeline(PolicyEngine())


@pytest.fixture
def adapter():
    return FakeAdapter("openai")


@pytest.fixture
def store():
    return InMemoryCacheStore(max_items=100)


@pytest.fixture
def gateway(adapter, store, pipeline, escalation_engine):
    return GatewayState(
        orchestrator=ProviderOrchestrator([adapter], timeout=1.0),
        cache=ResponseCache(store, timeout=1.0, base_ttl=3600),
        moderation=pipeline,
        escalation=escalation_engine,
    )


@pytest.fixture
def coordinator(gateway):
    return RequestCoordinator(gateway, failover=True, audit=False)
