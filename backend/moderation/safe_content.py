import re
from typing import Optional

from schemas import LearnerProfile, ModerationResult
from scanners.age import effective_age, grade_to_age

DEFAULT_REDIRECT = (
    "I'd be happy to help you learn! Could you please rephrase your question in a way that "
    "focuses on understanding the concepts? I'm here to guide you through your learning journey."
)

ACADEMIC_INTEGRITY_REDIRECT = (
    "I'd love to help you learn! Instead of giving you the solution directly, let me guide you "
    "through the problem step by step. This way, you'll understand the concepts and be able to "
    "solve similar problems on your own. What part would you like to start with?"
)

PROFANITY_REDIRECT = (
    "I notice some inappropriate language in your message. Let's keep our conversation respectful "
    "and focused on learning. I'm here to help with your studies. What subject can I assist you with today?"
)

TOPIC_REDIRECT = (
    "That topic isn't something I can help with in an educational context. I'm designed to assist "
    "with schoolwork and learning. What academic subject would you like to explore instead?"
)

PERSONAL_INFO_REDIRECT = (
    "I notice you might be sharing personal information. For your safety, please don't share "
    "personal details. Let's focus on your learning goals instead. What subject can I help you with?"
)

PARENTAL_CONTROLS_REDIRECT = (
    "That topic has been turned off for your account. Let's find something else to learn about. "
    "What are you working on in class?"
)


def _age_redirect(age: Optional[int]) -> str:
    if age is None or age >= 16:
        return (
            "I'd like to help you learn about this topic, but let's approach it in an age-appropriate way. "
            "What specific aspect would you like to understand better?"
        )
    if age < 10:
        return (
            "That's a grown-up topic! Let's talk about something fun you're learning in school instead. "
            "What's your favorite subject?"
        )
    return (
        "That topic is a bit advanced for now. Let's focus on concepts that are perfect for your grade "
        "level. What are you studying in class that I can help with?"
    )


_REDIRECTS = {
    "academic_integrity": ACADEMIC_INTEGRITY_REDIRECT,
    "profanity": PROFANITY_REDIRECT,
    "inappropriate_topic": TOPIC_REDIRECT,
    "personal_information": PERSONAL_INFO_REDIRECT,
    "parental_controls": PARENTAL_CONTROLS_REDIRECT,
}


def generate_safe_content(original: str, result: ModerationResult, profile: LearnerProfile = None) -> str:
    """Text to show the learner in place of content the moderation result rejected.

    The redirect is chosen by the first category that has one, so the same
    result always yields the same text.
    """
    if result.is_appropriate:
        return original

    for category in result.categories:
        if category == "age_inappropriate":
            return _age_redirect(effective_age(profile))
        if category in _REDIRECTS:
            return _REDIRECTS[category]
    return DEFAULT_REDIRECT


_SIMPLER_WORDS = [
    ("chemical compounds", "simple materials"),
    ("utilize", "use"),
    ("demonstrate", "show"),
    ("comprehend", "understand"),
    ("acquire", "get"),
    ("construct", "build"),
    ("examine", "look at"),
    ("investigate", "study"),
    ("various", "different"),
]

_COMPLEX_CONCEPTS = re.compile(
    r"\b(quantum|molecular|cellular|atomic|theoretical|hypothetical|abstract|sophisticated|intricate|elaborate)\b",
    re.I,
)


def _simplify(text: str) -> str:
    for hard, easy in _SIMPLER_WORDS:
        text = re.sub(rf"\b{hard}\b", easy, text, flags=re.I)
    return _COMPLEX_CONCEPTS.sub("advanced", text)


def _middle_school(text: str) -> str:
    return re.sub(r"\b(elementary|basic)\b", "foundational", text, flags=re.I)


def apply_age_filtering(text: str, age: Optional[int] = None, grade_level: Optional[str] = None) -> str:
    if age is None and not grade_level:
        return text

    if age is not None and age < 13:
        text = _simplify(text)
    elif age is not None and age < 16:
        text = _middle_school(text)

    if grade_level:
        grade_age = grade_to_age(grade_level)
        if grade_age is not None:
            grade = grade_age - 5
            if grade <= 5:
                text = _simplify(text)
            elif grade <= 8:
                text = _middle_school(text)
    return text
