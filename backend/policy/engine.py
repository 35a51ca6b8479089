import logging
from typing import Dict, List

import yaml

from deps import config
from errors import PolicyError
from schemas import ModerationResult, SafetyCheck, SafetyLevel, SuggestedAction
from .validator import validate_policy

logger = logging.getLogger(__name__)


class PolicyEngine:
    """Maps individual safety checks to moderation verdicts using the YAML policy."""

    def __init__(self, policy_file: str = None):
        self.policy_file = policy_file or config.POLICY_FILE
        self.policy = self._load_policy()

    def _load_policy(self) -> Dict:
        """Load and validate policy from YAML file."""
        try:
            with open(self.policy_file, 'r') as f:
                policy = yaml.safe_load(f)
        except FileNotFoundError:
            raise PolicyError(f"Policy file not found: {self.policy_file}")
        except yaml.YAMLError as e:
            raise PolicyError(f"Failed to parse policy: {e}")

        if not validate_policy(policy):
            raise PolicyError(f"Invalid policy structure in {self.policy_file}")

        logger.info("policy %s loaded from %s", policy.get("version"), self.policy_file)
        return policy

    def to_result(self, check: SafetyCheck) -> ModerationResult:
        """One check -> one verdict. Passed checks always allow."""
        if check.passed:
            return ModerationResult(
                is_appropriate=True,
                confidence=check.confidence,
                categories=[],
                severity=SafetyLevel.LOW,
                suggested_action=SuggestedAction.ALLOW,
                checks=[check],
            )

        cat = self.policy["categories"].get(check.type)
        if cat is None:
            return ModerationResult(
                is_appropriate=False,
                confidence=check.confidence,
                categories=[check.type],
                severity=SafetyLevel.HIGH,
                suggested_action=SuggestedAction(self.policy["fallback_action"]),
                reason=check.details or f"Unrecognised check '{check.type}' failed.",
                checks=[check],
            )

        return ModerationResult(
            is_appropriate=False,
            confidence=check.confidence,
            categories=[cat.get("category", check.type)],
            severity=SafetyLevel(cat["severity"]),
            suggested_action=SuggestedAction(cat["action"]),
            reason=cat["explanation"],
            checks=[check],
        )

    def evaluate(self, checks: List[SafetyCheck]) -> List[ModerationResult]:
        return [self.to_result(check) for check in checks]

    def reload(self):
        """Reload policy from file (useful for hot-reloading)."""
        self.policy = self._load_policy()
