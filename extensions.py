"""
Process-wide services and the rate limiter.

The progress and Gemini services are built once in create_app() and kept on
``app.extensions``; shutdown_services() releases them explicitly.
"""

from __future__ import annotations

from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from gemini_service import GeminiService
from local_store import create_local_store
from progress_service import ProgressService
from remote_store import init_remote_store

limiter = Limiter(key_func=get_remote_address, default_limits=[])


def init_services(app: Flask) -> None:
    """Build the progress and Gemini services from app config."""
    local = create_local_store(app.config.get("LOCAL_STORE_PATH", ""))
    remote = init_remote_store(app)
    app.extensions["progress_service"] = ProgressService(local, remote)
    app.extensions["gemini_service"] = GeminiService.from_config(app.config)
    app.logger.info("Progress backend: %s", app.extensions["progress_service"].backend_name)


def shutdown_services(app: Flask) -> None:
    service = app.extensions.pop("progress_service", None)
    if service is not None:
        service.close()
    app.extensions.pop("gemini_service", None)


def get_progress_service() -> ProgressService:
    return current_app.extensions["progress_service"]


def get_gemini_service() -> GeminiService:
    return current_app.extensions["gemini_service"]
