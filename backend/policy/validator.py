from typing import Dict

from schemas import SafetyLevel, SuggestedAction

_ACTIONS = {a.value for a in SuggestedAction}
_LEVELS = {l.value for l in SafetyLevel}


def validate_policy(policy: Dict) -> bool:
    """Validate policy structure."""
    if not isinstance(policy, dict):
        return False
    required_keys = ["version", "categories", "fallback_action"]
    if not all(key in policy for key in required_keys):
        return False
    if policy["fallback_action"] not in _ACTIONS:
        return False
    if not isinstance(policy["categories"], dict):
        return False

    for _, cat_data in policy["categories"].items():
        if not all(key in cat_data for key in ["action", "severity", "explanation"]):
            return False
        if cat_data["action"] not in _ACTIONS or cat_data["severity"] not in _LEVELS:
            return False

    return True
