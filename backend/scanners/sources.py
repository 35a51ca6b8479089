from schemas import SafetyCheck
from .base import Checker, CheckContext


class SourceReliabilityChecker(Checker):
    name = "source_reliability"

    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        response = context.response
        has_sources = bool(response and (response.metadata.sources or response.metadata.citations))
        if has_sources:
            return SafetyCheck(type=self.name, passed=True, confidence=0.8, details="Response cites course materials")
        return SafetyCheck(type=self.name, passed=False, confidence=0.5, details="No sources provided")
