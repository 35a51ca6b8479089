from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Set, Tuple

from schemas import LLMRequest
from response_cache.keys import normalize_query

SIMILARITY_THRESHOLD = 0.6


def _similar(a: str, b: str) -> bool:
    if a == b:
        return True
    ta: Set[str] = set(a.split())
    tb: Set[str] = set(b.split())
    if not ta or not tb:
        return False
    return len(ta & tb) / len(ta | tb) >= SIMILARITY_THRESHOLD


class QuestionLog:
    """Recent normalised questions per user, used to spot repeated confusion."""

    def __init__(self, max_per_user: int = 50):
        self.max_per_user = max_per_user
        self._log: Dict[str, Deque[Tuple[datetime, str]]] = {}

    def observe(self, request: LLMRequest) -> None:
        entries = self._log.setdefault(request.user_id, deque(maxlen=self.max_per_user))
        entries.append((request.timestamp, normalize_query(request.query)))

    def count_similar(self, request: LLMRequest, window_minutes: int = 30) -> int:
        """How many logged questions from this user, within the window, resemble this one."""
        current = normalize_query(request.query)
        since = request.timestamp - timedelta(minutes=window_minutes)
        return sum(
            1
            for ts, text in self._log.get(request.user_id, ())
            if since <= ts <= request.timestamp and _similar(current, text)
        )
