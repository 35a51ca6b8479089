from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Metrics
requests_total = Counter('buddyguard_requests_total', 'Coordinated tutor requests', ['outcome'])
moderation_latency = Histogram('buddyguard_moderation_latency_seconds', 'Moderation stage latency', ['stage'])
moderation_verdicts_total = Counter('buddyguard_moderation_verdicts_total', 'Moderation verdicts', ['stage', 'action'])
provider_requests_total = Counter('buddyguard_provider_requests_total', 'Provider calls', ['provider', 'status'])
provider_latency = Histogram('buddyguard_provider_latency_seconds', 'Provider call latency', ['provider'])
provider_tokens_total = Counter('buddyguard_provider_tokens_total', 'Tokens used', ['provider'])
cache_events_total = Counter('buddyguard_cache_events_total', 'Response cache events', ['event'])
escalations_total = Counter('buddyguard_escalations_total', 'Escalation events raised', ['severity'])
notifications_total = Counter('buddyguard_notifications_total', 'Teacher notification sends', ['channel', 'status'])


def get_metrics():
    """Return prometheus metrics bytes."""
    return generate_latest()

# re-export constant for convenience
__all__ = [
    "requests_total",
    "moderation_latency",
    "moderation_verdicts_total",
    "provider_requests_total",
    "provider_latency",
    "provider_tokens_total",
    "cache_events_total",
    "escalations_total",
    "notifications_total",
    "get_metrics",
    "CONTENT_TYPE_LATEST"
]
