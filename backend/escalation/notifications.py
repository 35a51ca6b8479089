import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from deps import config
from errors import NotificationError
from schemas import EscalationEvent, LLMRequest, SafetyLevel, TeacherNotification
from metrics.metrics import notifications_total

logger = logging.getLogger(__name__)

CHANNEL_NAMES = ["email", "sms", "in_app", "push"]

SEVERITY_CHANNELS = {
    SafetyLevel.CRITICAL: ["email", "sms", "in_app", "push"],
    SafetyLevel.HIGH: ["email", "in_app", "push"],
    SafetyLevel.MEDIUM: ["email", "in_app"],
    SafetyLevel.LOW: ["in_app"],
}


def channels_for(severity: SafetyLevel, extra: List[str] = None) -> List[str]:
    channels = list(SEVERITY_CHANNELS[severity])
    for name in extra or []:
        if name not in channels:
            channels.append(name)
    return channels


def build_message(event: EscalationEvent, request: LLMRequest, params: Dict = None) -> str:
    params = params or {}
    course_name = (request.course_context.course_name if request.course_context else "") or "Unknown Course"

    lines = [
        "Student Escalation Alert",
        "",
        f"Student ID: {request.user_id}",
        f"Course: {course_name}",
        f"Time: {event.timestamp.isoformat()}",
        f"Severity: {event.severity.value.upper()}",
        f"Reason: {event.reason}",
        "",
        f'Student Question: "{request.query}"',
        "",
    ]
    if params.get("immediate"):
        lines += ["IMMEDIATE ATTENTION REQUIRED", ""]
    if params.get("counselor"):
        lines += ["Consider involving school counselor", ""]
    if params.get("intervention_needed"):
        lines += ["Student may need additional learning support", ""]
    if params.get("expertise_needed"):
        lines += ["Question requires subject matter expertise", ""]
    lines.append("Please review and take appropriate action through the teacher portal.")
    return "\n".join(lines)


class NotificationChannel(ABC):
    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def send(self, notification: TeacherNotification) -> None:
        """Deliver or raise NotificationError."""


class LoggingChannel(NotificationChannel):
    """Writes the notification to the service log. Used when no delivery backend is configured."""

    async def send(self, notification: TeacherNotification) -> None:
        logger.warning(
            "[%s] escalation %s for student %s -> teacher %s (priority=%s)",
            self.name,
            notification.escalation_event_id,
            notification.student_id,
            notification.teacher_id or "unassigned",
            notification.priority.value,
        )


class WebhookChannel(NotificationChannel):
    """POSTs the notification as JSON to a delivery service."""

    def __init__(self, name: str, url: str, timeout: float = None):
        super().__init__(name)
        self.url = url
        self.timeout = timeout or config.NOTIFICATION_TIMEOUT_SECONDS

    async def send(self, notification: TeacherNotification) -> None:
        payload = {"channel": self.name, **notification.model_dump(mode="json")}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"{self.name} webhook failed: {e}") from e


def default_channels(webhook_url: str = None) -> Dict[str, NotificationChannel]:
    url = config.NOTIFICATION_WEBHOOK_URL if webhook_url is None else webhook_url
    if url:
        return {name: WebhookChannel(name, url) for name in CHANNEL_NAMES}
    return {name: LoggingChannel(name) for name in CHANNEL_NAMES}


class NotificationDispatcher:
    """Sends one notification on each named channel; failures are logged, never retried."""

    def __init__(self, channels: Optional[Dict[str, NotificationChannel]] = None, timeout: float = None):
        self.channels = channels if channels is not None else default_channels()
        self.timeout = timeout or config.NOTIFICATION_TIMEOUT_SECONDS

    async def dispatch(self, notification: TeacherNotification) -> List[str]:
        """Returns the channels that accepted the notification."""
        delivered = []
        for name in notification.channels:
            channel = self.channels.get(name)
            if channel is None:
                logger.warning("no notification channel named %s", name)
                notifications_total.labels(channel=name, status="missing").inc()
                continue
            try:
                await asyncio.wait_for(channel.send(notification), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error("notification %s via %s timed out", notification.id, name)
                notifications_total.labels(channel=name, status="timeout").inc()
                continue
            except NotificationError as e:
                logger.error("notification %s via %s failed: %s", notification.id, name, e)
                notifications_total.labels(channel=name, status="error").inc()
                continue
            except Exception as e:
                logger.exception("notification %s via %s raised unexpectedly: %s", notification.id, name, e)
                notifications_total.labels(channel=name, status="error").inc()
                continue
            notifications_total.labels(channel=name, status="sent").inc()
            delivered.append(name)
        return delivered
