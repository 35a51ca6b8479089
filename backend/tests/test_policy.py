import itertools

import pytest

from errors import PolicyError
from policy.combiner import combine_results
from policy.engine import PolicyEngine
from schemas import ModerationResult, SafetyCheck, SafetyLevel, SuggestedAction


@pytest.fixture
def engine():
    return PolicyEngine()


def result(action, severity, confidence=0.9, categories=None):
    return ModerationResult(
        is_appropriate=action == SuggestedAction.ALLOW,
        confidence=confidence,
        categories=categories or [],
        severity=severity,
        suggested_action=action,
    )


def test_passed_check_allows(engine):
    verdict = engine.to_result(SafetyCheck(type="profanity", passed=True, confidence=0.8))
    assert verdict.suggested_action == SuggestedAction.ALLOW
    assert verdict.severity == SafetyLevel.LOW
    assert verdict.categories == []


def test_failed_pii_blocks(engine):
    verdict = engine.to_result(SafetyCheck(type="personal_information", passed=False, confidence=0.9))
    assert verdict.suggested_action == SuggestedAction.BLOCK
    assert verdict.severity == SafetyLevel.HIGH
    assert verdict.categories == ["personal_information"]


def test_failed_academic_integrity_filters(engine):
    verdict = engine.to_result(SafetyCheck(type="academic_integrity", passed=False, confidence=0.8))
    assert verdict.suggested_action == SuggestedAction.FILTER
    assert verdict.severity == SafetyLevel.MEDIUM


def test_unknown_check_uses_fallback(engine):
    verdict = engine.to_result(SafetyCheck(type="mystery", passed=False, confidence=0.4))
    assert verdict.suggested_action == SuggestedAction.BLOCK
    assert verdict.severity == SafetyLevel.HIGH


def test_error_check_blocks(engine):
    verdict = engine.to_result(SafetyCheck(type="error", passed=False, confidence=1.0))
    assert verdict.suggested_action == SuggestedAction.BLOCK


def test_missing_policy_file(tmp_path):
    with pytest.raises(PolicyError):
        PolicyEngine(str(tmp_path / "nope.yaml"))


def test_invalid_policy_file(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text("version: '1'\ncategories:\n  profanity:\n    action: explode\n    severity: low\n    explanation: x\nfallback_action: block\n")
    with pytest.raises(PolicyError):
        PolicyEngine(str(path))


def test_combine_empty():
    combined = combine_results([])
    assert combined.is_appropriate
    assert combined.suggested_action == SuggestedAction.ALLOW
    assert combined.severity == SafetyLevel.LOW
    assert combined.confidence == 0.5


@pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
def test_block_wins_regardless_of_order_and_confidence(order):
    results = [
        result(SuggestedAction.ALLOW, SafetyLevel.LOW, confidence=0.99),
        result(SuggestedAction.FILTER, SafetyLevel.MEDIUM, confidence=0.95, categories=["profanity"]),
        result(SuggestedAction.BLOCK, SafetyLevel.LOW, confidence=0.01, categories=["personal_information"]),
    ]
    combined = combine_results([results[i] for i in order])
    assert combined.suggested_action == SuggestedAction.BLOCK
    assert combined.is_appropriate is False
    assert set(combined.categories) == {"profanity", "personal_information"}


def test_escalate_beats_filter():
    combined = combine_results([
        result(SuggestedAction.FILTER, SafetyLevel.HIGH),
        result(SuggestedAction.ESCALATE, SafetyLevel.MEDIUM),
    ])
    assert combined.suggested_action == SuggestedAction.ESCALATE
    assert combined.severity == SafetyLevel.HIGH


def test_categories_first_seen_order():
    combined = combine_results([
        result(SuggestedAction.FILTER, SafetyLevel.LOW, categories=["bias", "uncertain"]),
        result(SuggestedAction.FILTER, SafetyLevel.LOW, categories=["uncertain", "profanity"]),
    ])
    assert combined.categories == ["bias", "uncertain", "profanity"]


def test_allow_uses_minimum_confidence():
    combined = combine_results([
        result(SuggestedAction.ALLOW, SafetyLevel.LOW, confidence=0.9),
        result(SuggestedAction.ALLOW, SafetyLevel.LOW, confidence=0.6),
    ])
    assert combined.is_appropriate
    assert combined.confidence == 0.6


def test_most_severe_first_wins_ties():
    first = result(SuggestedAction.FILTER, SafetyLevel.MEDIUM, confidence=0.7)
    second = result(SuggestedAction.FILTER, SafetyLevel.MEDIUM, confidence=0.3)
    assert combine_results([first, second]).confidence == 0.7
