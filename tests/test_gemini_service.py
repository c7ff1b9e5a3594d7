"""Tests for Gemini quiz, evaluation and study-plan generation."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from ai_resilience import CircuitOpenError
from gemini_service import (
    DEFAULT_MODEL,
    GeminiService,
    extract_json,
    fallback_evaluation,
    fallback_quiz,
    fallback_study_plan,
)
from subject_config import get_subject, get_topics

QUIZ = [
    {
        "question": "Solve 2x + 3 = 7",
        "questionType": "MCQ",
        "options": ["1", "2", "3", "4"],
        "subjectName": "Mathematics",
        "topicName": "Algebra",
        "difficulty": "Easy",
        "correctAnswer": "2",
    }
]

EVALUATION = {
    "overallScore": 90,
    "subjectBreakdown": {"Mathematics": {"score": 90, "strengths": ["Algebra"], "weaknesses": []}},
    "strengths": ["Algebra"],
    "weaknesses": [],
    "recommendations": ["Keep going"],
    "difficultyLevel": "Advanced",
}


@pytest.fixture
def gemini():
    return GeminiService(api_key="test-key")


def _reply(payload):
    return (json.dumps(payload), {"cache_hit": False})


class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert extract_json('```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_fence_without_language(self):
        assert extract_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert extract_json('Here is your quiz:\n[{"a": 1}]\nGood luck!') == [{"a": 1}]

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            extract_json("I cannot help with that.")

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            extract_json("")


class TestFallbacks:
    def test_default_quiz(self):
        quiz = fallback_quiz()
        assert len(quiz) == 1
        assert quiz[0]["question"] == "What is 2 + 2?"
        assert quiz[0]["correctAnswer"] == "4"
        assert quiz[0]["subjectName"] == "Mathematics"
        assert quiz[0]["topicName"] == "Basic Arithmetic"

    def test_quiz_uses_first_selected_subject(self):
        physics = get_subject("physics")
        quiz = fallback_quiz([physics], {"physics": get_topics("physics", ["energy"])})
        assert quiz[0]["subjectName"] == "Physics"
        assert quiz[0]["topicName"] == "Energy, Work & Power"

    def test_evaluation_shape(self):
        evaluation = fallback_evaluation()
        assert evaluation["overallScore"] == 75
        for key in ("subjectBreakdown", "strengths", "weaknesses", "recommendations", "difficultyLevel"):
            assert key in evaluation

    def test_study_plan_shape(self):
        plan = fallback_study_plan()
        assert "Week 1" in plan["weeklySchedule"]
        assert plan["milestones"] and plan["resources"] and plan["goals"]

    def test_fallbacks_are_fresh_copies(self):
        fallback_evaluation()["strengths"].append("mutated")
        assert "mutated" not in fallback_evaluation()["strengths"]


class TestConfiguration:
    def test_from_config(self):
        service = GeminiService.from_config({
            "GOOGLE_API_KEY": "k", "GEMINI_MODEL": "gemini-1.5-pro", "AI_CACHE_TTL": "300",
        })
        assert service.available
        assert service.model == "gemini-1.5-pro"
        assert service.cache_ttl == 300

    def test_defaults(self):
        service = GeminiService.from_config({})
        assert not service.available
        assert service.model == DEFAULT_MODEL


class TestWithoutKey:
    @patch("gemini_service.call_gemini")
    def test_no_key_uses_fallbacks_without_calling(self, mock_call):
        service = GeminiService(api_key="")
        assert service.generate_evaluation_quiz([], {}) == fallback_quiz()
        assert service.evaluate_quiz_answers(QUIZ, {"0": "2"}) == fallback_evaluation()
        assert service.generate_study_plan(EVALUATION, [], {}) == fallback_study_plan()
        mock_call.assert_not_called()


class TestQuiz:
    @patch("gemini_service.call_gemini")
    def test_returns_parsed_quiz(self, mock_call, gemini):
        mock_call.return_value = _reply(QUIZ)
        math = get_subject("math")
        quiz = gemini.generate_evaluation_quiz([math], {"math": get_topics("math", ["algebra"])}, "Sec 4", 2025)
        assert quiz == QUIZ

    @patch("gemini_service.call_gemini")
    def test_prompt_names_subjects_and_topics(self, mock_call, gemini):
        mock_call.return_value = _reply(QUIZ)
        math = get_subject("math")
        gemini.generate_evaluation_quiz([math], {"math": get_topics("math", ["algebra", "geometry"])}, "Sec 4", 2025)

        model, prompt, api_key = mock_call.call_args.args
        assert model == DEFAULT_MODEL
        assert api_key == "test-key"
        assert "Subjects: Mathematics" in prompt
        assert "Topics: Algebra, Geometry" in prompt
        assert "Sec 4 student preparing for their 2025 O-Level exams" in prompt
        assert "generate 5 questions" in prompt

    @patch("gemini_service.call_gemini")
    def test_fenced_reply(self, mock_call, gemini):
        mock_call.return_value = ("```json\n" + json.dumps(QUIZ) + "\n```", {})
        assert gemini.generate_evaluation_quiz([], {}) == QUIZ

    @patch("gemini_service.call_gemini")
    def test_malformed_reply_falls_back(self, mock_call, gemini):
        mock_call.return_value = ("not json at all", {})
        assert gemini.generate_evaluation_quiz([], {}) == fallback_quiz()

    @patch("gemini_service.call_gemini")
    def test_wrong_shape_falls_back(self, mock_call, gemini):
        mock_call.return_value = _reply({"questions": QUIZ})
        assert gemini.generate_evaluation_quiz([], {}) == fallback_quiz()

    @patch("gemini_service.call_gemini")
    def test_empty_list_falls_back(self, mock_call, gemini):
        mock_call.return_value = _reply([])
        assert gemini.generate_evaluation_quiz([], {}) == fallback_quiz()

    @patch("gemini_service.call_gemini")
    def test_non_object_items_dropped(self, mock_call, gemini):
        mock_call.return_value = _reply(QUIZ + ["stray"])
        assert gemini.generate_evaluation_quiz([], {}) == QUIZ

    @patch("gemini_service.call_gemini")
    def test_request_error_falls_back(self, mock_call, gemini):
        mock_call.side_effect = RuntimeError("quota exceeded")
        assert gemini.generate_evaluation_quiz([], {}) == fallback_quiz()

    @patch("gemini_service.call_gemini")
    def test_open_circuit_falls_back(self, mock_call, gemini):
        mock_call.side_effect = CircuitOpenError("Gemini circuit is open; skipping request")
        assert gemini.generate_evaluation_quiz([], {}) == fallback_quiz()


class TestEvaluation:
    @patch("gemini_service.call_gemini")
    def test_returns_parsed_evaluation(self, mock_call, gemini):
        mock_call.return_value = _reply(EVALUATION)
        assert gemini.evaluate_quiz_answers(QUIZ, {"0": "2"}) == EVALUATION

    @patch("gemini_service.call_gemini")
    def test_prompt_contains_quiz_and_answers(self, mock_call, gemini):
        mock_call.return_value = _reply(EVALUATION)
        gemini.evaluate_quiz_answers(QUIZ, {"0": "2"})
        prompt = mock_call.call_args.args[1]
        assert "Solve 2x + 3 = 7" in prompt
        assert '"0": "2"' in prompt

    @patch("gemini_service.call_gemini")
    def test_list_reply_falls_back(self, mock_call, gemini):
        mock_call.return_value = _reply([EVALUATION])
        assert gemini.evaluate_quiz_answers(QUIZ, {}) == fallback_evaluation()


class TestStudyPlan:
    @patch("gemini_service.call_gemini")
    def test_returns_parsed_plan(self, mock_call, gemini):
        plan = {"weeklySchedule": {}, "milestones": ["m"], "resources": ["r"], "goals": ["g"]}
        mock_call.return_value = _reply(plan)
        assert gemini.generate_study_plan(EVALUATION, [get_subject("math")], {}) == plan
        assert "4-week study plan" in mock_call.call_args.args[1]

    @patch("gemini_service.call_gemini")
    def test_error_falls_back(self, mock_call, gemini):
        mock_call.side_effect = TimeoutError()
        assert gemini.generate_study_plan(EVALUATION, [], {}) == fallback_study_plan()

    @patch("gemini_service.call_gemini")
    def test_cache_ttl_passed_through(self, mock_call):
        mock_call.return_value = _reply(fallback_study_plan())
        GeminiService(api_key="k", cache_ttl=120).generate_study_plan({}, [], {})
        assert mock_call.call_args.kwargs["cache_ttl"] == 120
