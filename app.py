"""
Learning Buddy — Flask Web Application

Onboards O-Level students, generates a Gemini evaluation quiz, scores it,
builds a study plan, and persists progress to Firestore with a local fallback.
"""

from __future__ import annotations

import atexit
import os
from typing import Any

from flask import Flask, Response

from blueprints import register_blueprints
from extensions import init_services, limiter, shutdown_services


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Progress (Firestore + local fallback) and Gemini services
    init_services(app)
    if not app.config.get("TESTING"):
        atexit.register(shutdown_services, app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    register_blueprints(app)

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.errorhandler(404)
    def not_found(_error):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return {"error": "Method not allowed"}, 405

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
