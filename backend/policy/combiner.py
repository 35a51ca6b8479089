from typing import List

from schemas import ModerationResult, SafetyLevel, SuggestedAction

# Action precedence is absolute: a single block wins regardless of confidence.
_ACTION_PRECEDENCE = [
    SuggestedAction.BLOCK,
    SuggestedAction.ESCALATE,
    SuggestedAction.FILTER,
]


def combine_results(results: List[ModerationResult]) -> ModerationResult:
    """Merge per-check verdicts into the verdict for the whole stage."""
    if not results:
        return ModerationResult(
            is_appropriate=True,
            confidence=0.5,
            severity=SafetyLevel.LOW,
            suggested_action=SuggestedAction.ALLOW,
        )

    most_severe = results[0]
    for result in results[1:]:
        if result.severity.rank > most_severe.severity.rank:
            most_severe = result

    categories: List[str] = []
    checks = []
    for result in results:
        for category in result.categories:
            if category not in categories:
                categories.append(category)
        checks.extend(result.checks)

    actions = {r.suggested_action for r in results}
    for action in _ACTION_PRECEDENCE:
        if action in actions:
            reasons = [r.reason for r in results if r.suggested_action == action and r.reason]
            return ModerationResult(
                is_appropriate=False,
                confidence=most_severe.confidence,
                categories=categories,
                severity=most_severe.severity,
                suggested_action=action,
                reason=reasons[0] if reasons else None,
                checks=checks,
            )

    return ModerationResult(
        is_appropriate=True,
        confidence=min(r.confidence for r in results),
        categories=categories,
        severity=most_severe.severity,
        suggested_action=SuggestedAction.ALLOW,
        checks=checks,
    )
