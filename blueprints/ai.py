"""AI routes — evaluation quiz, answer evaluation, study plan, onboarding finish."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from extensions import get_gemini_service, get_progress_service, limiter
from helpers import json_body
from onboarding import build_evaluation, build_quiz, build_study_plan, finish_onboarding

bp = Blueprint("ai", __name__)


def _ai_limit() -> str:
    return current_app.config.get("AI_RATE_LIMIT", "20 per minute")


@bp.route("/api/quiz", methods=["POST"])
@limiter.limit(_ai_limit)
def api_generate_quiz():
    user_data = json_body()
    quiz = build_quiz(get_gemini_service(), user_data)
    return jsonify({"quiz": quiz})


@bp.route("/api/quiz/evaluate", methods=["POST"])
@limiter.limit(_ai_limit)
def api_evaluate_quiz():
    data = json_body(required=("quiz",))
    if not isinstance(data["quiz"], list):
        return jsonify({"error": "quiz must be a list"}), 400
    evaluation = build_evaluation(get_gemini_service(), data["quiz"], data.get("answers"))
    return jsonify({"evaluation": evaluation})


@bp.route("/api/study-plan", methods=["POST"])
@limiter.limit(_ai_limit)
def api_study_plan():
    data = json_body(required=("evaluation",))
    user_data = data.get("userData") or {}
    if not isinstance(user_data, dict) or not isinstance(data["evaluation"], dict):
        return jsonify({"error": "userData and evaluation must be objects"}), 400
    plan = build_study_plan(get_gemini_service(), user_data, data["evaluation"])
    return jsonify({"studyPlan": plan})


@bp.route("/api/users/<user_id>/onboarding/finish", methods=["POST"])
def api_finish_onboarding(user_id: str):
    data = json_body(required=("userData",))
    if not isinstance(data["userData"], dict):
        return jsonify({"error": "userData must be an object"}), 400
    result = finish_onboarding(
        get_progress_service(),
        user_id,
        data["userData"],
        quiz=data.get("quiz"),
        answers=data.get("answers"),
        evaluation=data.get("evaluation"),
        study_plan=data.get("studyPlan"),
    )
    return jsonify(result.to_dict())
