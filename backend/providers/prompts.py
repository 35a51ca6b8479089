import math
from typing import Dict, List, Optional

from schemas import CourseContext, LLMRequest, QueryType, SafetyLevel

HISTORY_LIMIT = 10

TUTOR_GUIDELINES = """Guidelines:
- Provide clear, educational explanations
- Encourage critical thinking
- Ask follow-up questions to check understanding
- If you're unsure about something, say so
- Avoid doing homework for students - guide them to find answers
- Keep responses appropriate for the student's age and grade level
- If asked about inappropriate topics, politely redirect to educational content"""

CRITICAL_KEYWORDS = ["suicide", "self-harm", "violence", "illegal"]
HIGH_RISK_KEYWORDS = ["inappropriate", "adult content", "dangerous"]

HANDOFF_PHRASES = [
    "i don't know",
    "i'm not sure",
    "you should ask your teacher",
    "this is beyond my knowledge",
    "complex topic",
]

FOLLOW_UPS: Dict[QueryType, List[str]] = {
    QueryType.GENERAL_QUESTION: [
        "Would you like me to explain any part in more detail?",
        "Do you have any follow-up questions?",
    ],
    QueryType.HOMEWORK_HELP: [
        "Can you try solving a similar problem?",
        "What part of this concept would you like to practice more?",
    ],
    QueryType.CONCEPT_EXPLANATION: [
        "Would you like to see an example of this concept?",
        "How does this relate to what you've learned before?",
    ],
    QueryType.PROBLEM_SOLVING: [
        "Can you walk me through your thinking process?",
        "What would you try differently next time?",
    ],
    QueryType.CREATIVE_WRITING: [
        "What inspired this idea?",
        "How could you develop this further?",
    ],
    QueryType.CODE_ASSISTANCE: [
        "Can you explain what this code does?",
        "What would happen if we changed this part?",
    ],
    QueryType.MATH_PROBLEM: [
        "Can you solve a similar problem on your own?",
        "What mathematical concept does this demonstrate?",
    ],
    QueryType.LANGUAGE_LEARNING: [
        "Can you use this in a sentence?",
        "What other words are related to this?",
    ],
}


def build_system_prompt(request: LLMRequest) -> str:
    """Tutor persona plus whatever learner and course context the request carries."""
    prompt = "You are BuddyAI, an educational AI assistant designed to help students learn effectively. "

    profile = request.learner_profile
    if profile and profile.age is not None and profile.age < 13:
        prompt += (
            f"You are speaking with a young student (age {profile.age}). "
            "Use age-appropriate language and explanations. "
        )

    course = request.course_context
    if course:
        prompt += f"The student is currently studying {course.subject} at {course.grade_level} level. "
        if course.current_lesson:
            prompt += f"They are working on: {course.current_lesson}. "

    return prompt + TUTOR_GUIDELINES


def build_messages(request: LLMRequest) -> List[Dict[str, str]]:
    """Recent conversation history followed by the current query, OpenAI/Anthropic role names."""
    messages = [
        {"role": msg.role, "content": msg.content}
        for msg in request.history[-HISTORY_LIMIT:]
        if msg.role in ("user", "assistant")
    ]
    messages.append({"role": "user", "content": request.query})
    return messages


def estimate_tokens(text: str) -> int:
    # ~4 characters per token for English text
    return math.ceil(len(text) / 4)


def estimate_cost(query: str, cost_per_token: float) -> float:
    input_tokens = estimate_tokens(query)
    output_tokens = min(input_tokens * 2, 1000)
    return (input_tokens + output_tokens) * cost_per_token


def confidence_from_finish(finish: str, text: str) -> float:
    """finish is normalised to 'stop', 'length' or anything else."""
    if finish == "stop" and len(text) > 50:
        return 0.9
    if finish == "length":
        return 0.7
    return 0.5


def assess_safety_level(text: str) -> SafetyLevel:
    lower = text.lower()
    if any(k in lower for k in CRITICAL_KEYWORDS):
        return SafetyLevel.CRITICAL
    if any(k in lower for k in HIGH_RISK_KEYWORDS):
        return SafetyLevel.HIGH
    return SafetyLevel.LOW


def extract_sources(course: Optional[CourseContext]) -> List[str]:
    if not course or not course.materials:
        return []
    relevant = [m for m in course.materials if m.relevance_score is not None and m.relevance_score > 0.7]
    return [m.title for m in relevant][:3]


def follow_ups(query_type: QueryType) -> List[str]:
    return list(FOLLOW_UPS.get(query_type, FOLLOW_UPS[QueryType.GENERAL_QUESTION]))


def recommends_escalation(text: str) -> bool:
    lower = text.lower()
    return any(phrase in lower for phrase in HANDOFF_PHRASES)
