from schemas import SafetyCheck
from .base import Checker, CheckContext

BIAS_INDICATORS = [
    "always",
    "never",
    "all people",
    "everyone knows",
    "obviously",
    "clearly",
    "definitely",
    "certainly",
    "without doubt",
]


class BiasChecker(Checker):
    """Counts absolutist phrasing; three or more reads as one-sided."""

    name = "bias"

    def __init__(self, threshold: int = 3):
        self.threshold = threshold

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        lower = text.lower()
        count = sum(1 for phrase in BIAS_INDICATORS if phrase in lower)
        if count >= self.threshold:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.7,
                details=f"Potential bias detected: {count} absolutist phrases",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.8, details="No significant bias detected")
