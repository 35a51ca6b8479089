import logging
from collections import deque
from typing import Deque, Dict, List

import numpy as np

from schemas import LLMRequest, LLMResponse, UsageRecord
from metrics.metrics import provider_latency, provider_tokens_total

logger = logging.getLogger(__name__)


class UsageTracker:
    """Bounded in-memory record of successful generations, mirrored to Prometheus."""

    def __init__(self, max_records: int = 1000):
        self.records: Deque[UsageRecord] = deque(maxlen=max_records)

    def record(self, request: LLMRequest, response: LLMResponse) -> UsageRecord:
        entry = UsageRecord(
            request_id=request.id,
            user_id=request.user_id,
            provider=response.provider,
            model=response.model,
            query_type=request.query_type,
            tokens_used=response.tokens_used,
            response_time_ms=response.response_time_ms,
            safety_level=response.safety_level,
            cached=response.cached,
        )
        self.records.append(entry)
        provider_tokens_total.labels(provider=entry.provider).inc(entry.tokens_used)
        provider_latency.labels(provider=entry.provider).observe(entry.response_time_ms / 1000.0)
        logger.info(
            "usage request=%s provider=%s model=%s tokens=%d latency_ms=%d",
            entry.request_id, entry.provider, entry.model, entry.tokens_used, entry.response_time_ms,
        )
        return entry

    def summary(self) -> Dict[str, Dict]:
        """Per-provider request count, token total and latency statistics."""
        by_provider: Dict[str, List[UsageRecord]] = {}
        for entry in self.records:
            by_provider.setdefault(entry.provider, []).append(entry)

        out = {}
        for provider, entries in by_provider.items():
            latencies = np.array([e.response_time_ms for e in entries], dtype=float)
            out[provider] = {
                "requests": len(entries),
                "tokens": int(sum(e.tokens_used for e in entries)),
                "mean_latency_ms": float(np.mean(latencies)),
                "p95_latency_ms": float(np.percentile(latencies, 95)),
            }
        return out
