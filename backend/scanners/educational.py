from schemas import SafetyCheck
from .base import Checker, CheckContext

EDUCATIONAL_INDICATORS = [
    "learn",
    "understand",
    "concept",
    "explain",
    "because",
    "therefore",
    "example",
    "practice",
    "study",
    "knowledge",
    "skill",
    "process",
    "observation",
    "experimentation",
    "science",
    "plants",
    "energy",
    "convert",
    "transform",
]


class EducationalValueChecker(Checker):
    name = "educational_value"

    def __init__(self, min_indicators: int = 1):
        self.min_indicators = min_indicators

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        lower = text.lower()
        count = sum(1 for word in EDUCATIONAL_INDICATORS if word in lower)
        if count >= self.min_indicators:
            return SafetyCheck(
                type=self.name,
                passed=True,
                confidence=0.8,
                details=f"Educational content with {count} indicators",
            )
        return SafetyCheck(type=self.name, passed=False, confidence=0.6, details="Limited educational value")
