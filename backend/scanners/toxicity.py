import re

from schemas import SafetyCheck
from .base import Checker, CheckContext

PROFANITY_WORDS = {
    "damn",
    "hell",
    "crap",
    "stupid",
    "idiot",
    "hate",
    "kill",
    "die",
    "death",
}

_WORD = re.compile(r"[a-z']+")


class ProfanityChecker(Checker):
    """Lexical match against the banned-word set."""

    name = "profanity"

    def __init__(self, words=None):
        self.words = frozenset(words or PROFANITY_WORDS)

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        found = sorted({w for w in _WORD.findall(text.lower()) if w in self.words})
        if found:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.9,
                details=f"Profanity detected: {', '.join(found)}",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.8, details="No profanity detected")
