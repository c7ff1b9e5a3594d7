"""Core routes — health check and subject catalogue."""

from __future__ import annotations

from flask import Blueprint, jsonify

from extensions import get_gemini_service, get_progress_service
from subject_config import catalogue

bp = Blueprint("core", __name__)


@bp.route("/healthz")
def healthz():
    service = get_progress_service()
    gemini = get_gemini_service()
    return jsonify({
        "status": "ok",
        "progress_backend": service.backend_name,
        "remote_available": service.remote_available,
        "ai_available": gemini.healthy,
        "ai_circuit": gemini.circuit_state,
    })


@bp.route("/api/subjects")
def api_subjects():
    return jsonify({"subjects": catalogue()})
