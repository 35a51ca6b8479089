from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from schemas import LLMRequest, LLMResponse, SafetyCheck


@dataclass(frozen=True)
class CheckContext:
    """What a checker may look at besides the text under review."""
    request: LLMRequest
    response: Optional[LLMResponse] = None

    @property
    def profile(self):
        return self.request.learner_profile


class Checker(ABC):
    """Common interface for every moderation checker.

    Checkers hold no mutable state, so one instance is shared by all requests.
    A keyword heuristic and an ML classifier are interchangeable as long as
    they return a SafetyCheck.
    """

    name: str = "checker"

    @abstractmethod
    def evaluate(self, text: str, context: CheckContext) -> SafetyCheck:
        ...

    def applies(self, context: CheckContext) -> bool:
        """Whether the checker should run for this request at all."""
        return True
