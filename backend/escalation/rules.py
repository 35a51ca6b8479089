import logging
import os
from typing import List

import yaml
from jsonschema import ValidationError, validate

from errors import PolicyError
from schemas import EscalationAction, EscalationCondition, EscalationRule, SafetyLevel

logger = logging.getLogger(__name__)

CONDITION_TYPES = ["safety_check_failed", "repeated_questions", "emotional_distress", "complex_academic"]
ACTION_TYPES = ["notify_teacher", "block_user", "require_supervision", "custom_response"]

RULES_SCHEMA = {
    "type": "object",
    "required": ["rules"],
    "properties": {
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name", "conditions", "priority"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "enabled": {"type": "boolean"},
                    "conditions": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["type"],
                            "properties": {
                                "type": {"enum": CONDITION_TYPES},
                                "threshold": {"type": "number", "minimum": 0},
                                "time_window": {"type": "integer", "minimum": 1},
                                "parameters": {"type": "object"},
                            },
                        },
                    },
                    "action": {
                        "type": "object",
                        "required": ["type"],
                        "properties": {
                            "type": {"enum": ACTION_TYPES},
                            "parameters": {"type": "object"},
                        },
                    },
                    "priority": {"enum": [level.value for level in SafetyLevel]},
                    "notification_channels": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
    },
}

COMPLEX_ACADEMIC_KEYWORDS = [
    "advanced",
    "graduate",
    "research",
    "thesis",
    "dissertation",
    "theoretical",
    "abstract",
    "philosophical",
    "quantum",
    "molecular",
]

DISTRESS_RULE_KEYWORDS = [
    "stressed",
    "anxious",
    "worried",
    "scared",
    "confused",
    "lost",
    "don't understand",
    "failing",
    "give up",
    "hopeless",
    "frustrated",
]


def default_rules() -> List[EscalationRule]:
    return [
        EscalationRule(
            id="safety-violation-high",
            name="High-Risk Safety Violation",
            conditions=[EscalationCondition(type="safety_check_failed", threshold=0.8)],
            action=EscalationAction(type="notify_teacher", parameters={"immediate": True}),
            priority=SafetyLevel.CRITICAL,
            notification_channels=["email", "sms", "in_app"],
        ),
        EscalationRule(
            id="emotional-distress",
            name="Student Emotional Distress",
            conditions=[EscalationCondition(type="emotional_distress", threshold=2)],
            action=EscalationAction(type="notify_teacher", parameters={"urgent": True, "counselor": True}),
            priority=SafetyLevel.CRITICAL,
            notification_channels=["email", "sms", "in_app"],
        ),
        EscalationRule(
            id="repeated-confusion",
            name="Repeated Student Confusion",
            conditions=[EscalationCondition(type="repeated_questions", threshold=3, time_window=30)],
            action=EscalationAction(type="notify_teacher", parameters={"intervention_needed": True}),
            priority=SafetyLevel.MEDIUM,
            notification_channels=["email", "in_app"],
        ),
        EscalationRule(
            id="complex-academic",
            name="Complex Academic Question",
            conditions=[EscalationCondition(type="complex_academic", threshold=1)],
            action=EscalationAction(type="notify_teacher", parameters={"expertise_needed": True}),
            priority=SafetyLevel.LOW,
            notification_channels=["in_app"],
        ),
    ]


def parse_rules(data) -> List[EscalationRule]:
    """Validate a rules document against RULES_SCHEMA and build the rule models."""
    try:
        validate(instance=data, schema=RULES_SCHEMA)
    except ValidationError as e:
        raise PolicyError(f"Invalid escalation rules: {e.message}")

    ids = [r["id"] for r in data["rules"]]
    if len(ids) != len(set(ids)):
        raise PolicyError("Invalid escalation rules: duplicate rule id")
    return [EscalationRule(**rule) for rule in data["rules"]]


def load_rules(path: str = None) -> List[EscalationRule]:
    """Rules from YAML; the built-in set when no file is configured or present."""
    if not path or not os.path.exists(path):
        logger.info("no escalation rule file at %s, using built-in rules", path)
        return default_rules()

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PolicyError(f"Failed to parse escalation rules: {e}")

    rules = parse_rules(data)
    logger.info("loaded %d escalation rules from %s", len(rules), path)
    return rules
