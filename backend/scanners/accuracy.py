from schemas import SafetyCheck
from .base import Checker, CheckContext


class AccuracyChecker(Checker):
    """Trusts the model's own confidence; below the floor the answer is flagged as uncertain."""

    name = "accuracy"

    def __init__(self, min_confidence: float = 0.7):
        self.min_confidence = min_confidence

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        confidence = context.response.confidence if context.response else 0.0
        passed = confidence >= self.min_confidence
        return SafetyCheck(
            type=self.name,
            passed=passed,
            confidence=confidence,
            details="Model confidence acceptable" if passed else f"Low model confidence ({confidence:.2f})",
        )
