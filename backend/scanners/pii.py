import re
from typing import List, Dict

from schemas import SafetyCheck
from .base import Checker, CheckContext

PII_PATTERNS = [
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ("email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")),
    ("phone", re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b")),
    ("phone", re.compile(r"\(\d{3}\)\s?\d{3}[-.\s]?\d{4}\b")),
    ("address", re.compile(r"\b\d{1,5}\s\w+\s(street|st|avenue|ave|road|rd|drive|dr)\b", re.I)),
]


def scan_pii(text: str) -> List[Dict]:
    """Scan for PII using regex patterns."""
    results: List[Dict] = []
    for kind, pattern in PII_PATTERNS:
        for match in pattern.finditer(text):
            results.append({
                "type": kind,
                "match": match.group(),
                "span": [match.start(), match.end()],
            })
    return results


class PersonalInfoChecker(Checker):
    """Flags contact details and identifiers. Details name the kinds found, never the values."""

    name = "personal_information"

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        found = scan_pii(text)
        if found:
            kinds = sorted({item["type"] for item in found})
            return SafetyCheck(
                type=self.name,
                passed=False,
                confidence=0.9,
                details=f"Potential personal information detected: {', '.join(kinds)}",
            )
        return SafetyCheck(type=self.name, passed=True, confidence=0.9, details="No personal information detected")
