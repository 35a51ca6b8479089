import asyncio
import json

import pytest

from coordinator.request_coordinator import RequestCoordinator
from coordinator.state import GatewayState
from deps import config
from errors import AllProvidersFailed, NoProviderAvailable, ProviderError
from moderation.safe_content import PERSONAL_INFO_REDIRECT
from providers.orchestrator import ProviderOrchestrator
from response_cache.cache import ResponseCache
from schemas import LearnerProfile, QueryType, SafetyLevel

from conftest import BrokenChannel, FakeAdapter, PHOTOSYNTHESIS_ANSWER, build_request


def gateway_with(adapters, store, pipeline, escalation_engine):
    return GatewayState(
        orchestrator=ProviderOrchestrator(adapters, timeout=1.0),
        cache=ResponseCache(store, timeout=1.0, base_ttl=3600),
        moderation=pipeline,
        escalation=escalation_engine,
    )


@pytest.mark.asyncio
async def test_answer_then_cache_hit(coordinator, adapter, store):
    first = await coordinator.process(build_request())
    assert first.provider == "openai"
    assert first.response == PHOTOSYNTHESIS_ANSWER
    assert not first.cached
    assert not first.metadata.escalation_recommended
    assert len(store) == 1

    second = await coordinator.process(build_request("how does photosynthesis work"))
    assert second.cached
    assert second.response == first.response
    assert len(adapter.calls) == 1


@pytest.mark.asyncio
async def test_safety_checks_cover_both_stages(coordinator):
    response = await coordinator.process(build_request())
    types = [c.type for c in response.metadata.safety_checks]
    assert types.index("personal_information") < types.index("educational_value")
    assert "source_reliability" in response.metadata.content_warnings


@pytest.mark.asyncio
async def test_harmful_query_refused_and_escalated(coordinator, adapter, escalation_engine, channels, store):
    response = await coordinator.process(build_request("I want to hurt someone"))

    assert response.provider == "safety_filter"
    assert response.model == "content_moderation"
    assert response.confidence == 1.0
    assert response.tokens_used == 0
    assert response.metadata.escalation_recommended
    assert "inappropriate_topic" in response.metadata.content_warnings
    assert adapter.calls == []
    assert len(store) == 0

    [event] = escalation_engine.active_events()
    assert event.severity == SafetyLevel.CRITICAL
    assert len(channels["sms"].sent) == 1


@pytest.mark.asyncio
async def test_personal_information_redirect(coordinator, adapter):
    response = await coordinator.process(build_request("my email is kid@school.org, can you email me?"))
    assert response.response == PERSONAL_INFO_REDIRECT
    assert response.safety_level == SafetyLevel.HIGH
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_distress_answered_but_escalated_and_not_cached(coordinator, adapter, escalation_engine, store):
    response = await coordinator.process(
        build_request("I am so stressed and confused about everything, I want to give up")
    )
    assert response.provider == "openai"
    assert response.metadata.escalation_recommended
    assert response.safety_level == SafetyLevel.CRITICAL
    assert len(adapter.calls) == 1
    assert len(store) == 0
    assert escalation_engine.active_events()[0].reason == "Student emotional distress detected"


@pytest.mark.asyncio
async def test_repeated_question_escalates_on_cache_hit(coordinator, adapter, escalation_engine):
    responses = [await coordinator.process(build_request()) for _ in range(3)]

    assert [r.cached for r in responses] == [False, True, True]
    assert [r.metadata.escalation_recommended for r in responses] == [False, False, True]
    assert responses[-1].safety_level == SafetyLevel.MEDIUM
    assert len(adapter.calls) == 1
    assert escalation_engine.active_events()[0].rule_id == "repeated-confusion"


@pytest.mark.asyncio
async def test_failover_to_second_provider(store, pipeline, escalation_engine):
    first = FakeAdapter("openai", fail=True)
    second = FakeAdapter("anthropic")
    coordinator = RequestCoordinator(
        gateway_with([first, second], store, pipeline, escalation_engine), failover=True, audit=False
    )
    response = await coordinator.process(build_request(query_type=QueryType.GENERAL_QUESTION))
    assert response.provider == "anthropic"
    assert len(first.calls) == 1


@pytest.mark.asyncio
async def test_without_failover_the_error_surfaces(store, pipeline, escalation_engine):
    coordinator = RequestCoordinator(
        gateway_with([FakeAdapter("openai", fail=True), FakeAdapter("anthropic")], store, pipeline, escalation_engine),
        failover=False,
        audit=False,
    )
    with pytest.raises(ProviderError) as exc:
        await coordinator.process(build_request(query_type=QueryType.GENERAL_QUESTION))
    assert not isinstance(exc.value, AllProvidersFailed)
    assert exc.value.provider == "openai"


@pytest.mark.asyncio
async def test_all_providers_down(store, pipeline, escalation_engine):
    coordinator = RequestCoordinator(
        gateway_with([FakeAdapter("openai", fail=True)], store, pipeline, escalation_engine), failover=True, audit=False
    )
    with pytest.raises(AllProvidersFailed):
        await coordinator.process(build_request())
    assert len(store) == 0


@pytest.mark.asyncio
async def test_no_providers(store, pipeline, escalation_engine):
    coordinator = RequestCoordinator(gateway_with([], store, pipeline, escalation_engine), audit=False)
    with pytest.raises(NoProviderAvailable):
        await coordinator.process(build_request())


@pytest.mark.asyncio
async def test_unsafe_output_replaced_for_young_learner(store, pipeline, escalation_engine):
    adapter = FakeAdapter("anthropic", text="The knight used a weapon to attack the castle, for example.")
    coordinator = RequestCoordinator(gateway_with([adapter], store, pipeline, escalation_engine), audit=False)
    request = build_request(
        "Tell me a story about knights",
        learner_profile=LearnerProfile(user_id="student-1", age=8),
    )
    response = await coordinator.process(request)

    assert "weapon" not in response.response
    assert response.response.startswith("That's a grown-up topic!")
    assert "age_inappropriate" in response.metadata.content_warnings
    assert response.safety_level in (SafetyLevel.HIGH, SafetyLevel.CRITICAL)
    assert len(store) == 0


@pytest.mark.asyncio
async def test_young_learner_answer_is_simplified(store, pipeline, escalation_engine):
    adapter = FakeAdapter(
        "anthropic",
        text="Plants utilize sunlight to demonstrate how energy works, because light is energy. For example, leaves.",
    )
    coordinator = RequestCoordinator(gateway_with([adapter], store, pipeline, escalation_engine), audit=False)
    response = await coordinator.process(
        build_request(learner_profile=LearnerProfile(user_id="student-1", age=9))
    )
    assert "Plants use sunlight to show how energy works" in response.response


@pytest.mark.asyncio
async def test_cancelled_request_writes_nothing(store, pipeline, escalation_engine):
    adapter = FakeAdapter("openai", delay=0.5)
    coordinator = RequestCoordinator(gateway_with([adapter], store, pipeline, escalation_engine), audit=False)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(coordinator.process(build_request()), timeout=0.05)
    assert len(store) == 0


@pytest.mark.asyncio
async def test_audit_line_is_pseudonymised(gateway, tmp_path, monkeypatch):
    log_file = tmp_path / "audit.jsonl"
    monkeypatch.setattr(config, "LOG_FILE", str(log_file))
    coordinator = RequestCoordinator(gateway, failover=True, audit=True)

    await coordinator.process(build_request("my email is kid@school.org"))
    await coordinator.process(build_request())

    text = log_file.read_text()
    assert "kid@school.org" not in text
    assert "student-1" not in text

    entries = [json.loads(line) for line in text.splitlines()]
    assert [e["final_action"] for e in entries] == ["block", "filter"]
    pii = [c for c in entries[0]["input_moderation"]["checks"] if c["type"] == "personal_information"]
    assert pii[0]["details"] == "[REDACTED]"
    assert entries[1]["provider"] == "openai"
    assert "total" in entries[1]["latencies"]


@pytest.mark.asyncio
async def test_broken_notification_channels_do_not_fail_the_request(coordinator, escalation_engine):
    escalation_engine.dispatcher.channels = {
        name: BrokenChannel(name) for name in ("email", "sms", "in_app", "push")
    }
    response = await coordinator.process(
        build_request("I am so stressed about my exam, how does photosynthesis work?")
    )
    assert response.provider == "openai"
    assert response.metadata.escalation_recommended
    assert len(escalation_engine.active_events()) == 1
