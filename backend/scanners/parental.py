from schemas import SafetyCheck
from .base import Checker, CheckContext


class ParentalControlsChecker(Checker):
    """Per-learner restricted topic list."""

    name = "parental_controls"

    def applies(self, context: CheckContext) -> bool:
        profile = context.profile
        return bool(profile and profile.parental_controls and profile.parental_controls.enabled)

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        controls = context.profile.parental_controls
        lower = text.lower()
        hits = [t for t in controls.restricted_topics if t and t.lower() in lower]
        if hits:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.9,
                details="Content violates parental control restrictions",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.9, details="Content complies with parental controls")
