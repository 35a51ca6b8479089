import logging
from typing import List, Sequence

from errors import ModerationSystemError
from schemas import SafetyCheck
from .base import Checker, CheckContext
from .accuracy import AccuracyChecker
from .age import AgeChecker
from .bias import BiasChecker
from .dishonesty import AcademicIntegrityChecker
from .educational import EducationalValueChecker
from .parental import ParentalControlsChecker
from .pii import PersonalInfoChecker
from .sources import SourceReliabilityChecker
from .toxicity import ProfanityChecker
from .topics import TopicChecker

logger = logging.getLogger(__name__)


def default_input_checkers() -> List[Checker]:
    return [
        ProfanityChecker(),
        TopicChecker(),
        AgeChecker(),
        ParentalControlsChecker(),
        AcademicIntegrityChecker(),
        PersonalInfoChecker(),
    ]


def default_output_checkers() -> List[Checker]:
    return [
        ProfanityChecker(),
        TopicChecker(),
        AgeChecker(),
        EducationalValueChecker(),
        AccuracyChecker(),
        BiasChecker(),
        SourceReliabilityChecker(),
    ]


def error_check(exc: ModerationSystemError) -> SafetyCheck:
    """The single failed check a stage degrades to when a checker raises."""
    return SafetyCheck(type="error", passed=False, confidence=1.0, details=str(exc))


def run_all_scanners(text: str, context: CheckContext, checkers: Sequence[Checker]) -> List[SafetyCheck]:
    """Run every applicable checker over text.

    If any checker raises, the whole stage collapses to one failed ``error``
    check so that moderation fails closed.
    """
    checks: List[SafetyCheck] = []
    for checker in checkers:
        try:
            if not checker.applies(context):
                continue
            checks.append(checker.evaluate(text, context))
        except Exception as e:
            err = ModerationSystemError(checker.name, e)
            logger.error("moderation checker failed, failing closed: %s", err)
            return [error_check(err)]
    return checks
