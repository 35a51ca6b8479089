import re

from schemas import QueryType

_CODE_WORDS = ("code", "program", "function", "algorithm")
_CODE_LANGUAGES = re.compile(r"\b(python|javascript|java|c\+\+|html|css)\b")
_MATH_WORDS = ("calculate", "solve", "equation", "formula")
_MATH_SUBJECTS = re.compile(r"\b(math|algebra|geometry|calculus|statistics)\b")
_CREATIVE_WORDS = ("write", "essay", "story", "poem", "creative")
_HOMEWORK_WORDS = ("homework", "assignment", "due", "help me with")
_CONCEPT_WORDS = ("explain", "what is", "how does", "why", "concept")
_PROBLEM_WORDS = ("problem", "solution", "approach", "strategy")
_LANGUAGE_WORDS = ("translate", "language", "grammar", "vocabulary")


def classify_query(text: str) -> QueryType:
    """Infer the query classification from keywords, most specific first."""
    q = text.lower()

    if any(w in q for w in _CODE_WORDS) or _CODE_LANGUAGES.search(q):
        return QueryType.CODE_ASSISTANCE
    if any(w in q for w in _MATH_WORDS) or _MATH_SUBJECTS.search(q):
        return QueryType.MATH_PROBLEM
    if any(w in q for w in _CREATIVE_WORDS):
        return QueryType.CREATIVE_WRITING
    if any(w in q for w in _HOMEWORK_WORDS):
        return QueryType.HOMEWORK_HELP
    if any(w in q for w in _CONCEPT_WORDS):
        return QueryType.CONCEPT_EXPLANATION
    if any(w in q for w in _PROBLEM_WORDS):
        return QueryType.PROBLEM_SOLVING
    if any(w in q for w in _LANGUAGE_WORDS):
        return QueryType.LANGUAGE_LEARNING
    return QueryType.GENERAL_QUESTION
