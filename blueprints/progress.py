"""User progress routes — profile creation, onboarding, read/save/update."""

from __future__ import annotations

from flask import Blueprint, jsonify

from extensions import get_progress_service
from helpers import json_body, optional_json_body

bp = Blueprint("progress", __name__)


@bp.route("/api/users/<user_id>/profile", methods=["POST"])
def api_create_profile(user_id: str):
    result = get_progress_service().create_user_profile(user_id, optional_json_body())
    return jsonify(result.to_dict()), 201


@bp.route("/api/users/<user_id>/onboarding", methods=["POST"])
def api_complete_onboarding(user_id: str):
    result = get_progress_service().complete_onboarding(user_id, json_body())
    return jsonify(result.to_dict())


@bp.route("/api/users/<user_id>/progress", methods=["GET"])
def api_get_progress(user_id: str):
    progress = get_progress_service().get_user_progress(user_id)
    if progress is None:
        return jsonify({"error": "No progress recorded for this user"}), 404
    return jsonify(progress)


@bp.route("/api/users/<user_id>/progress", methods=["PUT"])
def api_save_progress(user_id: str):
    result = get_progress_service().save_user_progress(user_id, optional_json_body())
    return jsonify(result.to_dict())


@bp.route("/api/users/<user_id>/progress", methods=["PATCH"])
def api_update_progress(user_id: str):
    updates = json_body()
    if not updates:
        return jsonify({"error": "No updates supplied"}), 400
    result = get_progress_service().update_user_data(user_id, updates)
    return jsonify(result.to_dict())
