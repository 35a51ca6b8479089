import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, model_validator


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryType(str, Enum):
    GENERAL_QUESTION = "general_question"
    HOMEWORK_HELP = "homework_help"
    CONCEPT_EXPLANATION = "concept_explanation"
    PROBLEM_SOLVING = "problem_solving"
    CREATIVE_WRITING = "creative_writing"
    CODE_ASSISTANCE = "code_assistance"
    MATH_PROBLEM = "math_problem"
    LANGUAGE_LEARNING = "language_learning"


class InputType(str, Enum):
    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    MULTIMODAL = "multimodal"


class SafetyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    SafetyLevel.LOW: 1,
    SafetyLevel.MEDIUM: 2,
    SafetyLevel.HIGH: 3,
    SafetyLevel.CRITICAL: 4,
}


def max_level(*levels: SafetyLevel) -> SafetyLevel:
    """Most severe of the given levels (first wins ties)."""
    best = levels[0]
    for level in levels[1:]:
        if level.rank > best.rank:
            best = level
    return best


class SuggestedAction(str, Enum):
    ALLOW = "allow"
    FILTER = "filter"
    BLOCK = "block"
    ESCALATE = "escalate"


# Learner and course context (supplied by the identity/course collaborators)

class ParentalControls(BaseModel):
    enabled: bool = False
    restricted_topics: List[str] = Field(default_factory=list)
    content_filter_level: str = "moderate"


class LearnerProfile(BaseModel):
    user_id: str
    age: Optional[int] = None
    grade_level: Optional[str] = None
    learning_style: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    language: str = "en"
    timezone: str = "UTC"
    parental_controls: Optional[ParentalControls] = None


class CourseMaterial(BaseModel):
    id: str
    title: str
    type: str = "lesson"
    content: str = ""
    relevance_score: Optional[float] = None


class CourseContext(BaseModel):
    course_id: str
    course_name: str = ""
    subject: str = ""
    grade_level: str = ""
    current_lesson: Optional[str] = None
    learning_objectives: List[str] = Field(default_factory=list)
    materials: List[CourseMaterial] = Field(default_factory=list)


class ConversationMessage(BaseModel):
    role: str
    content: str


class LLMRequest(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    session_id: str
    query: str
    query_type: Optional[QueryType] = None
    input_type: InputType = InputType.TEXT
    learner_profile: Optional[LearnerProfile] = None
    course_context: Optional[CourseContext] = None
    history: List[ConversationMessage] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _infer_query_type(self):
        if self.query_type is None:
            from classification import classify_query
            self.query_type = classify_query(self.query)
        return self


class SafetyCheck(BaseModel):
    type: str
    passed: bool
    confidence: float = Field(ge=0.0, le=1.0)
    details: Optional[str] = None


class Citation(BaseModel):
    source: str
    title: str
    url: Optional[str] = None
    relevance: float = 0.0


class ResponseMetadata(BaseModel):
    sources: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    suggested_follow_ups: List[str] = Field(default_factory=list)
    escalation_recommended: bool = False
    content_warnings: List[str] = Field(default_factory=list)
    safety_checks: List[SafetyCheck] = Field(default_factory=list)


class LLMResponse(BaseModel):
    id: str = Field(default_factory=_new_id)
    request_id: str
    response: str
    provider: str
    model: str
    confidence: float = Field(ge=0.0, le=1.0)
    safety_level: SafetyLevel = SafetyLevel.LOW
    tokens_used: int = 0
    response_time_ms: int = 0
    cached: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class ModerationResult(BaseModel):
    is_appropriate: bool
    confidence: float
    categories: List[str] = Field(default_factory=list)
    severity: SafetyLevel = SafetyLevel.LOW
    suggested_action: SuggestedAction = SuggestedAction.ALLOW
    reason: Optional[str] = None
    checks: List[SafetyCheck] = Field(default_factory=list)


class ModelCapabilities(BaseModel):
    provider: str
    model: str
    max_tokens: int
    supports_images: bool = False
    supports_audio: bool = False
    supports_code: bool = True
    languages: List[str] = Field(default_factory=list)
    specialties: List[QueryType] = Field(default_factory=list)
    cost_per_token: float
    average_response_time_ms: int = 2000


class UsageRecord(BaseModel):
    request_id: str
    user_id: str
    provider: str
    model: str
    query_type: QueryType
    tokens_used: int
    response_time_ms: int
    safety_level: SafetyLevel
    cached: bool
    timestamp: datetime = Field(default_factory=_utcnow)


# Escalation

class EscalationCondition(BaseModel):
    type: str
    threshold: Optional[float] = None
    time_window: Optional[int] = None  # minutes
    parameters: Dict[str, Any] = Field(default_factory=dict)


class EscalationAction(BaseModel):
    type: str = "notify_teacher"
    parameters: Dict[str, Any] = Field(default_factory=dict)


class EscalationRule(BaseModel):
    id: str
    name: str
    enabled: bool = True
    conditions: List[EscalationCondition]
    action: EscalationAction = Field(default_factory=EscalationAction)
    priority: SafetyLevel = SafetyLevel.MEDIUM
    notification_channels: List[str] = Field(default_factory=list)


class EscalationDecision(BaseModel):
    should_escalate: bool
    reason: str
    severity: SafetyLevel = SafetyLevel.LOW
    rule_id: Optional[str] = None


class EscalationEvent(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    session_id: str
    request_id: str
    course_id: Optional[str] = None
    rule_id: Optional[str] = None
    reason: str
    severity: SafetyLevel
    teacher_id: Optional[str] = None
    resolved: bool = False
    resolved_by: Optional[str] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class TeacherNotification(BaseModel):
    id: str = Field(default_factory=_new_id)
    escalation_event_id: str
    teacher_id: Optional[str] = None
    student_id: str
    course_id: Optional[str] = None
    message: str
    priority: SafetyLevel
    channels: List[str]
    sent_at: datetime = Field(default_factory=_utcnow)


class EscalationMetrics(BaseModel):
    total_escalations: int
    escalations_by_reason: Dict[str, int]
    escalations_by_severity: Dict[str, int]
    resolution_rate: float
    average_resolution_seconds: Optional[float] = None


# HTTP bodies

class AskRequest(BaseModel):
    user_id: str
    session_id: str
    query: str
    query_type: Optional[QueryType] = None
    input_type: InputType = InputType.TEXT
    learner_profile: Optional[LearnerProfile] = None
    course_context: Optional[CourseContext] = None
    history: List[ConversationMessage] = Field(default_factory=list)


class CostEstimate(BaseModel):
    provider: str
    model: str
    estimated_cost: float


class ResolveRequest(BaseModel):
    teacher_id: str
    resolution: str


class AssignEventRequest(BaseModel):
    teacher_id: str


class TeacherAssignment(BaseModel):
    student_id: str
    teacher_id: str
    course_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
