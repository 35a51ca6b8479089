import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import numpy as np

from deps import config
from errors import EscalationNotFound, EscalationUnauthorized
from schemas import (
    EscalationCondition,
    EscalationDecision,
    EscalationEvent,
    EscalationMetrics,
    EscalationRule,
    LLMRequest,
    LLMResponse,
    SafetyCheck,
    SafetyLevel,
    TeacherNotification,
    _utcnow,
)
from metrics.metrics import escalations_total
from .history import QuestionLog
from .notifications import NotificationDispatcher, build_message, channels_for
from .rules import COMPLEX_ACADEMIC_KEYWORDS, DISTRESS_RULE_KEYWORDS, load_rules
from .teachers import TeacherDirectory

logger = logging.getLogger(__name__)

# Any one of these in the raw query escalates immediately, before the rule table.
DISTRESS_PHRASES = [
    "stressed",
    "anxious",
    "worried",
    "scared",
    "confused",
    "lost",
    "don't understand anything",
    "failing",
    "give up",
    "hopeless",
    "want to give up",
    "so stressed",
    "so confused",
]

HARM_PHRASES = [
    "hurt someone",
    "hurt myself",
    "harm others",
    "kill myself",
    "want to kill",
    "want to die",
    "end my life",
]

DISTRESS_REASON = "Student emotional distress detected"

_NO_ESCALATION = EscalationDecision(should_escalate=False, reason="No escalation criteria met")


class EscalationEngine:
    """Decides when a human teacher must step in, and tracks the resulting incidents."""

    def __init__(
        self,
        rules: List[EscalationRule] = None,
        directory: TeacherDirectory = None,
        dispatcher: NotificationDispatcher = None,
        question_log: QuestionLog = None,
        enabled: bool = None,
        threshold: float = None,
    ):
        self._rules: List[EscalationRule] = list(rules) if rules is not None else load_rules(config.ESCALATION_RULES_FILE)
        self.teachers = directory or TeacherDirectory()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.question_log = question_log or QuestionLog()
        self.enabled = config.ESCALATION_ENABLED if enabled is None else enabled
        self.threshold = config.ESCALATION_THRESHOLD if threshold is None else threshold

        self._events: Dict[str, EscalationEvent] = {}
        self._active: Dict[str, EscalationEvent] = {}
        self._history: Dict[str, List[EscalationEvent]] = {}

    # Rules

    @property
    def rules(self) -> List[EscalationRule]:
        return list(self._rules)

    def update_rules(self, rules: List[EscalationRule]) -> None:
        self._rules = list(rules)
        logger.info("escalation rules replaced (%d rules)", len(self._rules))

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> bool:
        for rule in self._rules:
            if rule.id == rule_id:
                rule.enabled = enabled
                logger.info("escalation rule %s enabled=%s", rule_id, enabled)
                return True
        return False

    def _rule(self, rule_id: Optional[str]) -> Optional[EscalationRule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    # Evaluation

    def observe(self, request: LLMRequest) -> None:
        """Record the question for repeated-question detection. Call before evaluate."""
        self.question_log.observe(request)

    def evaluate(
        self,
        request: LLMRequest,
        response: Optional[LLMResponse],
        checks: List[SafetyCheck],
    ) -> EscalationDecision:
        if not self.enabled:
            return EscalationDecision(should_escalate=False, reason="Escalation disabled")

        query = request.query.lower()
        if any(p in query for p in DISTRESS_PHRASES + HARM_PHRASES):
            return EscalationDecision(should_escalate=True, reason=DISTRESS_REASON, severity=SafetyLevel.CRITICAL)

        high_risk = [c for c in checks if not c.passed and c.confidence >= self.threshold]
        if high_risk:
            types = ", ".join(dict.fromkeys(c.type for c in high_risk))
            return EscalationDecision(
                should_escalate=True,
                reason=f"High-risk safety violations: {types}",
                severity=SafetyLevel.HIGH,
            )

        for rule in self._rules:
            if rule.enabled and all(self._condition_holds(c, request, checks) for c in rule.conditions):
                logger.info("escalation rule %s fired for user %s", rule.id, request.user_id)
                return EscalationDecision(
                    should_escalate=True,
                    reason=f"Rule triggered: {rule.name}",
                    severity=rule.priority,
                    rule_id=rule.id,
                )

        return _NO_ESCALATION

    def _condition_holds(self, condition: EscalationCondition, request: LLMRequest, checks: List[SafetyCheck]) -> bool:
        query = request.query.lower()

        if condition.type == "safety_check_failed":
            threshold = condition.threshold if condition.threshold is not None else 0.8
            return any(
                not c.passed and (
                    c.confidence >= threshold
                    or (c.confidence >= 0.9 and c.type in ("inappropriate_topic", "profanity"))
                )
                for c in checks
            )

        if condition.type == "repeated_questions":
            threshold = condition.threshold if condition.threshold is not None else 3
            window = condition.time_window or 30
            return self.question_log.count_similar(request, window) >= threshold

        if condition.type == "emotional_distress":
            keywords = condition.parameters.get("keywords", DISTRESS_RULE_KEYWORDS)
            threshold = condition.threshold if condition.threshold is not None else 2
            return sum(1 for k in keywords if k in query) >= threshold

        if condition.type == "complex_academic":
            keywords = condition.parameters.get("keywords", COMPLEX_ACADEMIC_KEYWORDS)
            threshold = condition.threshold if condition.threshold is not None else 1
            return sum(1 for k in keywords if k in query) >= threshold

        return False

    # Incidents

    async def escalate(self, request: LLMRequest, decision: EscalationDecision) -> EscalationEvent:
        course_id = request.course_context.course_id if request.course_context else None
        event = EscalationEvent(
            user_id=request.user_id,
            session_id=request.session_id,
            request_id=request.id,
            course_id=course_id,
            rule_id=decision.rule_id,
            reason=decision.reason,
            severity=decision.severity,
            teacher_id=self.teachers.lookup(request.user_id, course_id),
        )
        self._events[event.id] = event
        self._active[event.id] = event
        self._history.setdefault(request.user_id, []).append(event)
        escalations_total.labels(severity=event.severity.value).inc()
        logger.warning("escalation %s created for user %s: %s", event.id, event.user_id, event.reason)

        rule = self._rule(decision.rule_id)
        if rule is not None:
            params = rule.action.parameters
            if rule.action.type in ("block_user", "require_supervision"):
                logger.warning("escalation %s requests %s for user %s", event.id, rule.action.type, event.user_id)
        else:
            params = {"immediate": event.severity.rank >= SafetyLevel.HIGH.rank}
            if event.severity == SafetyLevel.CRITICAL:
                params["counselor"] = True

        if event.teacher_id is None:
            logger.warning("no teacher assigned for escalation %s", event.id)

        notification = TeacherNotification(
            escalation_event_id=event.id,
            teacher_id=event.teacher_id,
            student_id=event.user_id,
            course_id=course_id,
            message=build_message(event, request, params),
            priority=event.severity,
            channels=channels_for(event.severity, rule.notification_channels if rule else None),
        )
        await self.dispatcher.dispatch(notification)
        return event

    def _active_event(self, event_id: str) -> EscalationEvent:
        event = self._active.get(event_id)
        if event is None:
            raise EscalationNotFound(f"Escalation not found: {event_id}")
        return event

    def assign_event(self, event_id: str, teacher_id: str) -> EscalationEvent:
        event = self._active_event(event_id)
        if event.teacher_id is not None and event.teacher_id != teacher_id:
            raise EscalationUnauthorized(f"Escalation {event_id} is already assigned to another teacher")
        event.teacher_id = teacher_id
        return event

    def resolve(self, event_id: str, teacher_id: str, resolution: str) -> EscalationEvent:
        event = self._active_event(event_id)
        if event.teacher_id != teacher_id:
            logger.error("teacher %s not authorized to resolve escalation %s", teacher_id, event_id)
            raise EscalationUnauthorized(f"Teacher {teacher_id} is not assigned to escalation {event_id}")

        event.resolved = True
        event.resolved_by = teacher_id
        event.resolution = resolution
        event.resolved_at = _utcnow()
        del self._active[event_id]
        logger.info("escalation %s resolved by teacher %s", event_id, teacher_id)
        return event

    # Queries

    def user_history(self, user_id: str, limit: Optional[int] = None) -> List[EscalationEvent]:
        events = list(self._history.get(user_id, []))
        return events[-limit:] if limit else events

    def active_events(self) -> List[EscalationEvent]:
        return list(self._active.values())

    def active_for_teacher(self, teacher_id: str) -> List[EscalationEvent]:
        return [e for e in self._active.values() if e.teacher_id == teacher_id]

    def metrics(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> EscalationMetrics:
        # naive bounds are taken as UTC
        if start is not None and start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end is not None and end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        events = [
            e for e in self._events.values()
            if (start is None or e.timestamp >= start) and (end is None or e.timestamp <= end)
        ]
        by_reason: Dict[str, int] = {}
        by_severity: Dict[str, int] = {}
        for e in events:
            by_reason[e.reason] = by_reason.get(e.reason, 0) + 1
            by_severity[e.severity.value] = by_severity.get(e.severity.value, 0) + 1

        resolved = [e for e in events if e.resolved and e.resolved_at is not None]
        average = None
        if resolved:
            durations = np.array([(e.resolved_at - e.timestamp).total_seconds() for e in resolved])
            average = float(np.mean(durations))

        return EscalationMetrics(
            total_escalations=len(events),
            escalations_by_reason=by_reason,
            escalations_by_severity=by_severity,
            resolution_rate=len(resolved) / len(events) if events else 0.0,
            average_resolution_seconds=average,
        )
