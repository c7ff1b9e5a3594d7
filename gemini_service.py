"""Gemini-backed quiz generation, answer evaluation and study planning.

Each call asks Gemini for JSON of a fixed shape and parses the reply. Any
failure (no API key, open circuit, request error, reply that is not the
expected JSON) substitutes static fallback content, so callers always get
a usable quiz, evaluation or plan.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ai_resilience import call_gemini, get_circuit
from errors import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"

QUIZ_PROMPT = """Generate a comprehensive evaluation quiz for a {level} student preparing for their {year} O-Level exams.

Subjects: {subjects}
Topics: {topics}

Please generate {count} questions that:
1. Cover the specified subjects and topics
2. Are appropriate for {level} level
3. Include multiple choice questions with 4 options each
4. Vary in difficulty (Easy, Medium, Hard)
5. Are relevant to O-Level preparation

Return ONLY a JSON array with this structure:
[
  {{
    "question": "Question text here",
    "questionType": "MCQ",
    "options": ["A", "B", "C", "D"],
    "subjectName": "Subject name",
    "topicName": "Topic name",
    "difficulty": "Easy/Medium/Hard",
    "correctAnswer": "A"
  }}
]"""

EVALUATION_PROMPT = """Evaluate the following quiz answers and provide a comprehensive analysis.

Quiz Questions: {quiz}
Student Answers: {answers}

Please provide:
1. Overall score (percentage)
2. Subject-wise performance breakdown
3. Strengths and weaknesses analysis
4. Specific recommendations for improvement
5. Difficulty level assessment

Return ONLY JSON with this structure:
{{
  "overallScore": 85,
  "subjectBreakdown": {{
    "Mathematics": {{
      "score": 90,
      "strengths": ["Algebra", "Basic Arithmetic"],
      "weaknesses": ["Geometry", "Trigonometry"]
    }}
  }},
  "strengths": ["Strong in algebra", "Good problem-solving"],
  "weaknesses": ["Geometry concepts", "Time management"],
  "recommendations": ["Focus on geometry", "Practice more problems"],
  "difficultyLevel": "Intermediate"
}}"""

STUDY_PLAN_PROMPT = """Create a personalized study plan based on the following evaluation.

Evaluation Results: {evaluation}
Subjects: {subjects}
Topics: {topics}

Generate a {weeks}-week study plan that:
1. Addresses the identified weaknesses
2. Builds on existing strengths
3. Includes daily study activities
4. Provides specific learning objectives
5. Suggests practice exercises and resources

Return ONLY JSON with this structure:
{{
  "weeklySchedule": {{
    "Week 1": {{
      "Monday": ["Subject: Topic - Activity"],
      "Tuesday": ["Subject: Topic - Activity"]
    }}
  }},
  "milestones": ["Complete algebra basics", "Master geometry concepts"],
  "resources": ["Textbook chapters", "Online practice", "Video tutorials"],
  "goals": ["Improve geometry", "Strengthen algebra"]
}}"""


# ── Helpers ────────────────────────────────────────────────

def _name(item: Any) -> str:
    """Display name of a Subject/Topic object, a {"name": ...} dict, or a plain id."""
    if hasattr(item, "name"):
        return str(item.name)
    if isinstance(item, dict):
        return str(item.get("name") or item.get("id") or "")
    return str(item)


def _subject_id(item: Any) -> str:
    if hasattr(item, "id"):
        return str(item.id)
    if isinstance(item, dict):
        return str(item.get("id") or item.get("name") or "")
    return str(item)


def _join_subjects(subjects: list) -> str:
    return ", ".join(_name(s) for s in subjects or [])


def _join_topics(topics: dict | None) -> str:
    names: list[str] = []
    for topic_list in (topics or {}).values():
        names.extend(_name(t) for t in topic_list or [])
    return ", ".join(names)


def extract_json(raw: str) -> Any:
    """Parse a JSON reply, tolerating Markdown fences and surrounding prose.

    Raises ValueError when no JSON value can be recovered.
    """
    text = (raw or "").strip()
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    match = re.search(r"(\[[\s\S]*\]|\{[\s\S]*\})", text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass
    raise ValueError("No JSON found in model response")


# ── Fallback content ───────────────────────────────────────

def fallback_quiz(subjects: list | None = None, topics: dict | None = None) -> list[dict]:
    first = (subjects or [None])[0]
    subject_name = _name(first) if first is not None else "Mathematics"
    topic_name = "Basic Arithmetic"
    if first is not None:
        first_topics = (topics or {}).get(_subject_id(first)) or []
        if first_topics:
            topic_name = _name(first_topics[0])
    return [
        {
            "question": "What is 2 + 2?",
            "questionType": "MCQ",
            "options": ["3", "4", "5", "6"],
            "subjectName": subject_name or "Mathematics",
            "topicName": topic_name,
            "difficulty": "Easy",
            "correctAnswer": "4",
        }
    ]


def fallback_evaluation() -> dict:
    return {
        "overallScore": 75,
        "subjectBreakdown": {
            "Mathematics": {
                "score": 75,
                "strengths": ["Basic concepts"],
                "weaknesses": ["Advanced topics"],
            }
        },
        "strengths": ["Basic understanding"],
        "weaknesses": ["Advanced concepts"],
        "recommendations": ["Practice more", "Review fundamentals"],
        "difficultyLevel": "Beginner",
    }


def fallback_study_plan() -> dict:
    return {
        "weeklySchedule": {
            "Week 1": {
                "Monday": ["Mathematics: Algebra - Practice linear equations"],
                "Tuesday": ["Mathematics: Geometry - Review basic shapes"],
            }
        },
        "milestones": ["Complete basic concepts", "Practice problem-solving"],
        "resources": ["Textbook", "Online exercises"],
        "goals": ["Improve understanding", "Build confidence"],
    }


# ── Service ────────────────────────────────────────────────

class GeminiService:
    """Quiz, evaluation and study-plan generation with static fallbacks."""

    QUIZ_QUESTIONS = 5
    PLAN_WEEKS = 4

    def __init__(self, api_key: str = "", model: str = DEFAULT_MODEL, cache_ttl: int = 0) -> None:
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.cache_ttl = cache_ttl

    @classmethod
    def from_config(cls, config: dict) -> GeminiService:
        return cls(
            api_key=config.get("GOOGLE_API_KEY", ""),
            model=config.get("GEMINI_MODEL", DEFAULT_MODEL),
            cache_ttl=int(config.get("AI_CACHE_TTL", 0) or 0),
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    @property
    def circuit_state(self) -> str:
        return get_circuit().state

    @property
    def healthy(self) -> bool:
        """Key configured and the circuit is letting calls through."""
        return self.available and self.circuit_state != "open"

    def _generate(self, prompt: str, expected: type, purpose: str) -> Any | None:
        """Return parsed JSON of type ``expected``, or None on any failure."""
        if not self.available:
            logger.info("No Gemini API key configured; using fallback %s.", purpose)
            return None
        try:
            raw, _ = call_gemini(self.model, prompt, self.api_key, cache_ttl=self.cache_ttl)
        except Exception as e:
            logger.warning("Gemini request for %s failed: %s", purpose, e)
            return None
        try:
            parsed = extract_json(raw)
        except ValueError as e:
            logger.warning("%s: %s reply unparseable: %s", ErrorKind.MALFORMED_AI_RESPONSE.value, purpose, e)
            return None
        if not isinstance(parsed, expected):
            logger.warning(
                "%s: %s reply was %s, expected %s",
                ErrorKind.MALFORMED_AI_RESPONSE.value, purpose, type(parsed).__name__, expected.__name__,
            )
            return None
        return parsed

    def generate_evaluation_quiz(self, subjects: list, topics: dict, level: str = "", year: Any = "") -> list[dict]:
        """MCQ evaluation quiz over the selected subjects and topics."""
        prompt = QUIZ_PROMPT.format(
            level=level or "secondary",
            year=year or "upcoming",
            subjects=_join_subjects(subjects),
            topics=_join_topics(topics),
            count=self.QUIZ_QUESTIONS,
        )
        quiz = self._generate(prompt, list, "quiz")
        if not quiz:
            return fallback_quiz(subjects, topics)
        return [q for q in quiz if isinstance(q, dict)] or fallback_quiz(subjects, topics)

    def evaluate_quiz_answers(self, quiz: list, answers: dict) -> dict:
        prompt = EVALUATION_PROMPT.format(
            quiz=json.dumps(quiz, indent=2, default=str),
            answers=json.dumps(answers, indent=2, default=str),
        )
        return self._generate(prompt, dict, "evaluation") or fallback_evaluation()

    def generate_study_plan(self, evaluation: dict, subjects: list, topics: dict) -> dict:
        prompt = STUDY_PLAN_PROMPT.format(
            evaluation=json.dumps(evaluation, indent=2, default=str),
            subjects=_join_subjects(subjects),
            topics=_join_topics(topics),
            weeks=self.PLAN_WEEKS,
        )
        return self._generate(prompt, dict, "study plan") or fallback_study_plan()
