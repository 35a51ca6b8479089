from typing import List, Tuple


class GatewayError(Exception):
    """Base exception for the tutor gateway."""
    pass


class PolicyError(GatewayError):
    """Raised when a policy or escalation rule file is missing or invalid."""
    pass


class NoProviderAvailable(GatewayError):
    """Raised when no provider adapter is registered."""
    pass


class ProviderError(GatewayError):
    """An adapter call failed (network, auth, quota, timeout)."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class AllProvidersFailed(ProviderError):
    """Every registered adapter failed during failover."""

    def __init__(self, errors: List[Tuple[str, Exception]]):
        summary = "; ".join(f"{name}: {err}" for name, err in errors)
        super().__init__(f"All providers failed. {summary}")
        self.errors = errors


class ModerationSystemError(GatewayError):
    """A moderation checker raised instead of returning a verdict."""

    def __init__(self, checker: str, cause: Exception):
        super().__init__(f"Checker '{checker}' failed: {cause}")
        self.checker = checker
        self.cause = cause


class CacheUnavailable(GatewayError):
    """The cache store could not be reached. Never surfaced to callers."""
    pass


class EscalationNotFound(GatewayError):
    """No active escalation event with the given id."""
    pass


class EscalationUnauthorized(GatewayError):
    """The teacher is not the one assigned to the escalation event."""
    pass


class NotificationError(GatewayError):
    """A notification channel failed to deliver."""
    pass
