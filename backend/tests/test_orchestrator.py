import pytest

from errors import AllProvidersFailed, NoProviderAvailable, ProviderError
from providers.anthropic_adapter import AnthropicAdapter, HAIKU, SONNET
from providers.gemini_adapter import GeminiAdapter, GEMINI_FLASH, GEMINI_PRO
from providers.openai_adapter import OpenAIAdapter
from providers.orchestrator import ProviderOrchestrator
from classification import classify_query
from schemas import CourseContext, CourseMaterial, InputType, LearnerProfile, QueryType

from conftest import FakeAdapter, build_request


def materials(n):
    return CourseContext(
        course_id="bio-101",
        materials=[CourseMaterial(id=str(i), title=f"Lesson {i}") for i in range(n)],
    )


def test_code_questions_prefer_openai():
    orch = ProviderOrchestrator([FakeAdapter("anthropic"), FakeAdapter("openai")])
    request = build_request("Why does my python loop never end?")
    assert request.query_type == QueryType.CODE_ASSISTANCE
    assert orch.select_provider(request).name == "openai"


def test_creative_writing_prefers_anthropic():
    orch = ProviderOrchestrator([FakeAdapter("openai"), FakeAdapter("anthropic")])
    request = build_request("Help me write a poem about autumn")
    assert orch.select_provider(request).name == "anthropic"


def test_young_learner_bonus_flips_general_question():
    orch = ProviderOrchestrator([FakeAdapter("openai"), FakeAdapter("anthropic")])
    adult = build_request("Tell me about the moon", query_type=QueryType.GENERAL_QUESTION)
    child = build_request(
        "Tell me about the moon",
        query_type=QueryType.GENERAL_QUESTION,
        learner_profile=LearnerProfile(user_id="student-1", age=9),
    )
    assert orch.score(adult, "openai") == 20
    assert orch.score(adult, "anthropic") == 18
    assert orch.select_provider(adult).name == "openai"
    assert orch.select_provider(child).name == "anthropic"


def test_large_context_bonus():
    orch = ProviderOrchestrator([FakeAdapter("openai"), FakeAdapter("anthropic")])
    request = build_request("Tell me about cells", query_type=QueryType.GENERAL_QUESTION, course_context=materials(6))
    assert orch.score(request, "openai") == 25
    assert orch.score(request, "anthropic") == 26


def test_ties_keep_registration_order():
    orch = ProviderOrchestrator([FakeAdapter("alpha"), FakeAdapter("beta")])
    assert [a.name for a in orch.ranked(build_request())] == ["alpha", "beta"]


def test_empty_registry_raises():
    with pytest.raises(NoProviderAvailable):
        ProviderOrchestrator().select_provider(build_request())


@pytest.mark.asyncio
async def test_generate_uses_top_adapter_only():
    first, second = FakeAdapter("openai"), FakeAdapter("anthropic")
    orch = ProviderOrchestrator([first, second])
    response = await orch.generate(build_request(query_type=QueryType.GENERAL_QUESTION))
    assert response.provider == "openai"
    assert len(first.calls) == 1
    assert second.calls == []


@pytest.mark.asyncio
async def test_generate_wraps_failure():
    orch = ProviderOrchestrator([FakeAdapter("openai", fail=True), FakeAdapter("anthropic")])
    with pytest.raises(ProviderError):
        await orch.generate(build_request(query_type=QueryType.GENERAL_QUESTION))


@pytest.mark.asyncio
async def test_generate_timeout_becomes_provider_error():
    orch = ProviderOrchestrator([FakeAdapter("openai", delay=0.5)], timeout=0.05)
    with pytest.raises(ProviderError) as exc:
        await orch.generate(build_request())
    assert exc.value.provider == "openai"


@pytest.mark.asyncio
async def test_failover_skips_failing_first_without_retry():
    first = FakeAdapter("openai", fail=True)
    second = FakeAdapter("anthropic")
    orch = ProviderOrchestrator([first, second])
    response = await orch.generate_with_failover(build_request(query_type=QueryType.GENERAL_QUESTION))
    assert response.provider == "anthropic"
    assert len(first.calls) == 1
    assert len(second.calls) == 1


@pytest.mark.asyncio
async def test_failover_all_failed_carries_every_error():
    orch = ProviderOrchestrator([FakeAdapter("openai", fail=True), FakeAdapter("anthropic", fail=True)])
    with pytest.raises(AllProvidersFailed) as exc:
        await orch.generate_with_failover(build_request(query_type=QueryType.GENERAL_QUESTION))
    assert [name for name, _ in exc.value.errors] == ["openai", "anthropic"]
    assert isinstance(exc.value, ProviderError)


@pytest.mark.asyncio
async def test_usage_recorded_and_summarised():
    orch = ProviderOrchestrator([FakeAdapter("openai")])
    await orch.generate(build_request())
    await orch.generate(build_request())
    summary = orch.usage.summary()
    assert summary["openai"]["requests"] == 2
    assert summary["openai"]["tokens"] == 84


def test_estimate_cost_formula():
    orch = ProviderOrchestrator([FakeAdapter("openai")])
    estimate = orch.estimate_cost(build_request("x" * 40))
    # 10 input tokens + min(20, 1000) output tokens
    assert estimate.estimated_cost == pytest.approx(30 * 0.000002)
    assert estimate.provider == "openai"


@pytest.mark.asyncio
async def test_prune_unavailable():
    orch = ProviderOrchestrator([FakeAdapter("openai", fail=True), FakeAdapter("anthropic")])
    assert await orch.prune_unavailable() == ["openai"]
    assert orch.available_providers() == ["anthropic"]


def test_openai_model_table():
    adapter = OpenAIAdapter(api_key="k")
    assert adapter.select_model(build_request(query_type=QueryType.CODE_ASSISTANCE)) == "gpt-4"
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION, input_type=InputType.IMAGE)) == "gpt-4"
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION, course_context=materials(11))) == "gpt-3.5-turbo-16k"
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION)) == "gpt-3.5-turbo"


def test_anthropic_model_table():
    adapter = AnthropicAdapter(api_key="k")
    assert adapter.select_model(build_request(query_type=QueryType.CREATIVE_WRITING)) == SONNET
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION)) == HAIKU
    assert adapter.select_model(build_request(query_type=QueryType.MATH_PROBLEM)) == SONNET


def test_gemini_model_table():
    adapter = GeminiAdapter(api_key="k")
    assert adapter.select_model(build_request(query_type=QueryType.MATH_PROBLEM)) == GEMINI_PRO
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION, course_context=materials(11))) == GEMINI_PRO
    assert adapter.select_model(build_request(query_type=QueryType.GENERAL_QUESTION)) == GEMINI_FLASH


def test_openai_capabilities_and_cost():
    adapter = OpenAIAdapter(api_key="k")
    caps = adapter.get_capabilities("gpt-4")
    assert caps.max_tokens == 8192
    assert caps.cost_per_token == 0.00003
    assert adapter.get_capabilities("gpt-unknown").cost_per_token == 0.000002


@pytest.mark.parametrize(
    "query,expected",
    [
        ("Can you help me write a JavaScript function?", QueryType.CODE_ASSISTANCE),
        ("Solve 2x + 3 = 7", QueryType.MATH_PROBLEM),
        ("Write a story about a dragon", QueryType.CREATIVE_WRITING),
        ("My science assignment is due tomorrow", QueryType.HOMEWORK_HELP),
        ("Explain the water cycle", QueryType.CONCEPT_EXPLANATION),
        ("What strategy works for chess openings?", QueryType.PROBLEM_SOLVING),
        ("Translate hello into French", QueryType.LANGUAGE_LEARNING),
        ("Tell me about the moon", QueryType.GENERAL_QUESTION),
    ],
)
def test_query_classification(query, expected):
    assert classify_query(query) == expected
    assert build_request(query).query_type == expected


def test_registry_changes_and_capabilities():
    orch = ProviderOrchestrator([FakeAdapter("openai")])
    orch.register(FakeAdapter("google"))
    assert orch.available_providers() == ["openai", "google"]
    assert [c.provider for c in orch.all_capabilities()] == ["openai", "google"]
    orch.unregister("openai")
    orch.unregister("missing")
    assert orch.available_providers() == ["google"]
