import logging
import time
from typing import List, Optional, Sequence

from policy.combiner import combine_results
from policy.engine import PolicyEngine
from scanners.base import Checker, CheckContext
from scanners.run_all import default_input_checkers, default_output_checkers, run_all_scanners
from schemas import LLMRequest, LLMResponse, ModerationResult
from metrics.metrics import moderation_latency, moderation_verdicts_total

logger = logging.getLogger(__name__)


class ModerationPipeline:
    """Runs the input and output checker sets and folds them into one verdict per stage."""

    def __init__(
        self,
        policy_engine: Optional[PolicyEngine] = None,
        input_checkers: Optional[Sequence[Checker]] = None,
        output_checkers: Optional[Sequence[Checker]] = None,
    ):
        self.policy_engine = policy_engine or PolicyEngine()
        self.input_checkers: List[Checker] = list(input_checkers) if input_checkers is not None else default_input_checkers()
        self.output_checkers: List[Checker] = list(output_checkers) if output_checkers is not None else default_output_checkers()

    def _run(self, stage: str, text: str, context: CheckContext, checkers: Sequence[Checker]) -> ModerationResult:
        start = time.time()
        checks = run_all_scanners(text, context, checkers)
        result = combine_results(self.policy_engine.evaluate(checks))
        moderation_latency.labels(stage=stage).observe(time.time() - start)
        moderation_verdicts_total.labels(stage=stage, action=result.suggested_action.value).inc()

        if not result.is_appropriate:
            logger.info(
                "%s moderation for request %s: action=%s severity=%s categories=%s",
                stage, context.request.id, result.suggested_action.value,
                result.severity.value, ",".join(result.categories),
            )
        return result

    def moderate_input(self, request: LLMRequest) -> ModerationResult:
        return self._run("input", request.query, CheckContext(request=request), self.input_checkers)

    def moderate_output(self, response: LLMResponse, request: LLMRequest) -> ModerationResult:
        context = CheckContext(request=request, response=response)
        return self._run("output", response.response, context, self.output_checkers)
