"""Onboarding flow — from wizard answers to a persisted evaluation and plan.

Wizard data carries ``userName, grade, examYear, examDate, level, email``,
the selected subject ids in ``subjects`` and, per subject id, the selected
topic ids in ``topics``.
"""

from __future__ import annotations

from typing import Any

from gemini_service import GeminiService
from progress_service import PersistResult, ProgressService
from subject_config import Subject, Topic, get_subject, get_topics


def resolve_selection(user_data: dict) -> tuple[list[Subject], dict[str, list[Topic]]]:
    """Selected subjects (catalogue objects) and their selected topics.

    Unknown subject or topic ids are dropped; a subject with no topics picked
    maps to an empty list.
    """
    selected_ids = user_data.get("subjects")
    chosen_topics = user_data.get("topics")
    if not isinstance(selected_ids, list):
        selected_ids = []
    if not isinstance(chosen_topics, dict):
        chosen_topics = {}

    subjects: list[Subject] = []
    for sid in selected_ids:
        subject = get_subject(str(sid))
        if subject is not None and subject not in subjects:
            subjects.append(subject)

    topics_by_subject = {
        s.id: get_topics(s.id, list(chosen_topics.get(s.id) or []))
        for s in subjects
    }
    return subjects, topics_by_subject


def build_quiz(gemini: GeminiService, user_data: dict) -> list[dict]:
    subjects, topics = resolve_selection(user_data)
    return gemini.generate_evaluation_quiz(
        subjects, topics, user_data.get("level", ""), user_data.get("examYear", "")
    )


def build_evaluation(gemini: GeminiService, quiz: list, answers: dict | None) -> dict:
    return gemini.evaluate_quiz_answers(quiz, answers or {})


def build_study_plan(gemini: GeminiService, user_data: dict, evaluation: dict) -> dict:
    subjects, topics = resolve_selection(user_data)
    return gemini.generate_study_plan(evaluation, subjects, topics)


def finish_onboarding(
    service: ProgressService,
    user_id: str,
    user_data: dict,
    quiz: list | None = None,
    answers: dict | None = None,
    evaluation: dict | None = None,
    study_plan: dict | None = None,
) -> PersistResult:
    """Complete onboarding and store the evaluation results in one merge."""
    payload: dict[str, Any] = dict(user_data)
    if quiz is not None:
        payload["evaluationQuiz"] = {"questions": quiz, "answers": answers or {}}
    if evaluation is not None:
        payload["evaluation"] = evaluation
    if study_plan is not None:
        payload["studyPlan"] = study_plan
    return service.complete_onboarding(user_id, payload)
