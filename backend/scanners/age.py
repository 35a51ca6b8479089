import re
from typing import Optional

from schemas import SafetyCheck
from .base import Checker, CheckContext

# (pattern, minimum age)
AGE_RESTRICTED_PATTERNS = [
    (re.compile(r"\b(violence|violent|fight|attack|weapon)\b", re.I), 13),
    (re.compile(r"\b(alcohol|beer|wine|drunk|drinking)\b", re.I), 16),
    (re.compile(r"\b(drug|marijuana|cocaine|heroin)\b", re.I), 16),
    (re.compile(r"\b(sex|sexual|mature themes)\b", re.I), 16),
    (re.compile(r"\b(death|suicide|kill|murder)\b", re.I), 14),
    (re.compile(r"\b(gambling|bet|casino|poker)\b", re.I), 18),
    (re.compile(r"\bcomplex political topics\b", re.I), 14),
    (re.compile(r"\bfinancial advice\b", re.I), 16),
    (re.compile(r"\b(medical|legal) advice\b", re.I), 18),
]


def grade_to_age(grade_level: str) -> Optional[int]:
    """Kindergarten is age 5, 1st grade 6, and so on."""
    digits = re.sub(r"\D", "", grade_level or "")
    if not digits:
        return None
    return max(5 + int(digits), 5)


def effective_age(profile) -> Optional[int]:
    if profile is None:
        return None
    if profile.age is not None:
        return profile.age
    return grade_to_age(profile.grade_level)


class AgeChecker(Checker):
    """Content category → minimum age, compared against the learner."""

    name = "age_inappropriate"

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        age = effective_age(context.profile)
        if age is None:
            return SafetyCheck(type=self.name, passed=True, confidence=0.5, details="Learner age unknown")

        for pattern, min_age in AGE_RESTRICTED_PATTERNS:
            if age < min_age and pattern.search(text):
                return SafetyCheck(
                    type=self.name,
                    passed=False,
                    confidence=0.8,
                    details=f"Content requires minimum age of {min_age}, learner is {age}",
                )
        return SafetyCheck(type=self.name, passed=True, confidence=0.9, details="Content is age-appropriate")
