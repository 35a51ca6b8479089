import re
from typing import List

from schemas import SafetyCheck
from .base import Checker, CheckContext

DIRECT_ANSWER_PATTERNS = [
    re.compile(r"give me the answer", re.I),
    re.compile(r"what is the answer to", re.I),
    re.compile(r"solve this for me", re.I),
    re.compile(r"do my homework", re.I),
    re.compile(r"write my essay", re.I),
    re.compile(r"complete this assignment", re.I),
    re.compile(r"just tell me the answer", re.I),
]

CHEATING_PATTERNS = [
    re.compile(r"copy.*paste", re.I),
    re.compile(r"plagiari[sz]e", re.I),
    re.compile(r"cheat.*test", re.I),
    re.compile(r"exam.*answers", re.I),
    re.compile(r"homework.*answers", re.I),
]


def scan_dishonesty(text: str) -> List[str]:
    """Return the patterns the text matched, direct-answer requests first."""
    evidence: List[str] = []
    for pattern in DIRECT_ANSWER_PATTERNS + CHEATING_PATTERNS:
        if pattern.search(text):
            evidence.append(pattern.pattern)
    return evidence


class AcademicIntegrityChecker(Checker):
    name = "academic_integrity"

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        evidence = scan_dishonesty(text)
        if evidence:
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.8,
                details=f"Request seeks completed work: {', '.join(evidence)}",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.9, details="Request supports learning")
