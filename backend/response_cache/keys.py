import hashlib
import json
import re

from schemas import LLMRequest

KEY_PREFIX = "llm:response"

_PUNCT = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace. Idempotent."""
    text = _PUNCT.sub("", query.lower())
    return _SPACES.sub(" ", text).strip()


def _components(request: LLMRequest) -> dict:
    course = request.course_context
    profile = request.learner_profile
    return {
        "query": normalize_query(request.query),
        "query_type": request.query_type.value if request.query_type else None,
        "input_type": request.input_type.value,
        "course": {
            "course_id": course.course_id,
            "subject": course.subject,
            "grade_level": course.grade_level,
            "current_lesson": course.current_lesson,
        } if course else None,
        "learner": {
            "age": profile.age,
            "grade_level": profile.grade_level,
            "learning_style": profile.learning_style,
            "language": profile.language,
        } if profile else None,
    }


def content_hash(request: LLMRequest) -> str:
    payload = json.dumps(_components(request), sort_keys=True)
    return hashlib.sha256(payload.encode()).hexdigest()


def cache_key(request: LLMRequest) -> str:
    return f"{KEY_PREFIX}:{content_hash(request)}:user:{request.user_id}:session:{request.session_id}"


def user_pattern(user_id: str) -> str:
    return f"{KEY_PREFIX}:*:user:{user_id}:*"


def session_pattern(session_id: str) -> str:
    return f"{KEY_PREFIX}:*:session:{session_id}"


def all_pattern() -> str:
    return f"{KEY_PREFIX}:*"
