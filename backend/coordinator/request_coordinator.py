import logging
import time
from typing import Dict, List, Optional

from deps import config
from audit.logger import log_audit
from moderation.safe_content import apply_age_filtering, generate_safe_content
from schemas import (
    EscalationDecision,
    LLMRequest,
    LLMResponse,
    ModerationResult,
    ResponseMetadata,
    SafetyCheck,
    SuggestedAction,
    max_level,
)
from metrics.metrics import requests_total
from .state import GatewayState

logger = logging.getLogger(__name__)


def _merge(existing: List[str], extra: List[str]) -> List[str]:
    merged = list(existing)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged


class RequestCoordinator:
    """End-to-end flow for one learner question.

    Flow:
    1. Moderate the query; anything but allow short-circuits to a redirect
    2. Cache lookup
    3. Generate (with failover when enabled)
    4. Moderate the answer
    5. Escalation
    6. Guarded cache write
    7. Audit trail and metrics
    """

    def __init__(self, state: GatewayState, failover: bool = None, audit: bool = True):
        self.state = state
        self.failover = config.FAILOVER_ENABLED if failover is None else failover
        self.audit = audit

    async def process(self, request: LLMRequest) -> LLMResponse:
        started = time.time()
        latencies: Dict[str, float] = {}

        input_mod = self.state.moderation.moderate_input(request)
        latencies["input_moderation"] = time.time() - started

        if input_mod.suggested_action != SuggestedAction.ALLOW:
            response, decision = await self._refuse(request, input_mod)
            self._finish(request, response, input_mod, None, decision, input_mod.suggested_action.value, started, latencies)
            requests_total.labels(outcome="refused").inc()
            return response

        cached = await self.state.cache.get(request)
        if cached is not None:
            decision = await self._escalation(request, cached, input_mod.checks)
            if decision.should_escalate:
                cached = cached.model_copy(update={
                    "metadata": cached.metadata.model_copy(update={"escalation_recommended": True}),
                    "safety_level": max_level(cached.safety_level, decision.severity),
                })
            self._finish(request, cached, input_mod, None, decision, "cached", started, latencies)
            requests_total.labels(outcome="cached").inc()
            return cached

        gen_start = time.time()
        if self.failover:
            generated = await self.state.orchestrator.generate_with_failover(request)
        else:
            generated = await self.state.orchestrator.generate(request)
        latencies["generation"] = time.time() - gen_start

        output_mod = self.state.moderation.moderate_output(generated, request)
        response = self._apply_output_moderation(request, generated, input_mod, output_mod)

        decision = await self._escalation(request, response, input_mod.checks + output_mod.checks)
        escalate_flag = (
            generated.metadata.escalation_recommended
            or decision.should_escalate
            or output_mod.suggested_action == SuggestedAction.ESCALATE
        )
        response = response.model_copy(update={
            "safety_level": max_level(response.safety_level, decision.severity) if decision.should_escalate else response.safety_level,
            "metadata": response.metadata.model_copy(update={"escalation_recommended": escalate_flag}),
        })

        await self.state.cache.put(request, response)

        self._finish(request, response, input_mod, output_mod, decision, output_mod.suggested_action.value, started, latencies)
        requests_total.labels(outcome="answered").inc()
        return response

    async def _refuse(self, request: LLMRequest, moderation: ModerationResult):
        profile = request.learner_profile
        decision = await self._escalation(request, None, moderation.checks)
        response = LLMResponse(
            request_id=request.id,
            response=generate_safe_content(request.query, moderation, profile),
            provider="safety_filter",
            model="content_moderation",
            confidence=1.0,
            safety_level=moderation.severity,
            tokens_used=0,
            response_time_ms=0,
            metadata=ResponseMetadata(
                content_warnings=list(moderation.categories),
                safety_checks=list(moderation.checks),
                escalation_recommended=decision.should_escalate,
            ),
        )
        return response, decision

    def _apply_output_moderation(
        self,
        request: LLMRequest,
        generated: LLMResponse,
        input_mod: ModerationResult,
        output_mod: ModerationResult,
    ) -> LLMResponse:
        profile = request.learner_profile
        if output_mod.suggested_action == SuggestedAction.BLOCK:
            text = generate_safe_content(generated.response, output_mod, profile)
        elif profile:
            text = apply_age_filtering(generated.response, profile.age, profile.grade_level)
        else:
            text = generated.response

        metadata = generated.metadata.model_copy(update={
            "content_warnings": _merge(generated.metadata.content_warnings, output_mod.categories),
            "safety_checks": list(input_mod.checks) + list(output_mod.checks),
        })
        return generated.model_copy(update={
            "response": text,
            "safety_level": max_level(generated.safety_level, output_mod.severity),
            "metadata": metadata,
        })

    async def _escalation(
        self,
        request: LLMRequest,
        response: Optional[LLMResponse],
        checks: List[SafetyCheck],
    ) -> EscalationDecision:
        engine = self.state.escalation
        engine.observe(request)
        decision = engine.evaluate(request, response, checks)
        if decision.should_escalate:
            await engine.escalate(request, decision)
        return decision

    def _finish(
        self,
        request: LLMRequest,
        response: LLMResponse,
        input_mod: ModerationResult,
        output_mod: Optional[ModerationResult],
        decision: EscalationDecision,
        final_action: str,
        started: float,
        latencies: Dict[str, float],
    ) -> None:
        latencies["total"] = time.time() - started
        logger.info(
            "request %s done: action=%s provider=%s safety=%s cached=%s escalated=%s",
            request.id, final_action, response.provider, response.safety_level.value,
            response.cached, decision.should_escalate,
        )
        if not self.audit:
            return
        log_audit(
            request_id=request.id,
            student_id=request.user_id,
            input_moderation=input_mod.model_dump(mode="json"),
            output_moderation=output_mod.model_dump(mode="json") if output_mod else None,
            escalation=decision.model_dump(mode="json"),
            final_action=final_action,
            provider=response.provider,
            cached=response.cached,
            latencies=latencies,
        )
