from deps import config
from schemas import LLMRequest, LLMResponse, QueryType

MIN_TTL = 300
MAX_TTL = 86400

QUERY_TYPE_FACTOR = {
    QueryType.GENERAL_QUESTION: 2.0,
    QueryType.HOMEWORK_HELP: 0.5,
    QueryType.CONCEPT_EXPLANATION: 1.5,
    QueryType.PROBLEM_SOLVING: 0.3,
}


def calculate_ttl(request: LLMRequest, response: LLMResponse, base_ttl: int = None) -> int:
    """Seconds to keep a response, always within [MIN_TTL, MAX_TTL]."""
    ttl = float(config.RESPONSE_CACHE_TTL if base_ttl is None else base_ttl)
    ttl *= QUERY_TYPE_FACTOR.get(request.query_type, 1.0)

    if response.confidence < 0.7:
        ttl *= 0.5

    profile = request.learner_profile
    if profile and profile.age is not None and profile.age < 13:
        ttl *= 0.7

    return int(max(MIN_TTL, min(MAX_TTL, ttl)))
