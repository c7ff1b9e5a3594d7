"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv()


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")

    # Gemini (GEMINI_API_KEY accepted as an alias)
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "") or os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
    AI_CACHE_TTL = int(os.environ.get("AI_CACHE_TTL", "0"))  # seconds, 0 = no caching

    # Firestore (remote progress store). Either a service-account file path
    # or the same JSON base64-encoded; neither set = local store only.
    FIREBASE_CREDENTIALS = os.environ.get("FIREBASE_CREDENTIALS", "")
    FIREBASE_KEY_B64 = os.environ.get("FIREBASE_KEY_B64", "")
    FIRESTORE_COLLECTION = os.environ.get("FIRESTORE_COLLECTION", "users")

    # Local progress store: SQLite file path, empty = in-memory
    LOCAL_STORE_PATH = os.environ.get("LOCAL_STORE_PATH", str(BASE_DIR / "learning_buddy.db"))

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE", "")

    # Rate limiting for the AI endpoints
    RATELIMIT_STORAGE_URI = "memory://"
    AI_RATE_LIMIT = os.environ.get("AI_RATE_LIMIT", "20 per minute")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set — quizzes and plans will use fallback content.")

        if not (cls.FIREBASE_CREDENTIALS or cls.FIREBASE_KEY_B64):
            warnings.warn("Firestore credentials are not set — progress is stored locally only.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False
    GOOGLE_API_KEY = ""
    FIREBASE_CREDENTIALS = ""
    FIREBASE_KEY_B64 = ""
    LOCAL_STORE_PATH = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
