from schemas import SafetyCheck
from .base import Checker, CheckContext

INAPPROPRIATE_TOPICS = [
    "violence",
    "drugs",
    "alcohol",
    "weapons",
    "gambling",
    "adult content",
    "self-harm",
    "suicide",
    "illegal activities",
    "hate speech",
    "discrimination",
]

HARMFUL_INTENT_PHRASES = [
    "hurt someone",
    "harm others",
    "want to kill",
    "want to die",
]


class TopicChecker(Checker):
    """Inappropriate topics and harmful-intent phrases."""

    name = "inappropriate_topic"

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        lower = text.lower()
        topics = [t for t in INAPPROPRIATE_TOPICS if t in lower]
        harmful = [p for p in HARMFUL_INTENT_PHRASES if p in lower]

        if harmful:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.9,
                details=f"Harmful intent detected: {', '.join(harmful)}",
            )
        if topics:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.9,
                details=f"Inappropriate topic detected: {', '.join(topics)}",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.8, details="Content appears appropriate")
