"""Failure categories shared by the persistence and AI layers.

None of these are raised to callers; they are logged and reported on
PersistResult so the degradation path is visible.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    REMOTE_UNAVAILABLE = "remote_unavailable"
    REMOTE_FAILURE = "remote_failure"
    LOCAL_FAILURE = "local_failure"
    MALFORMED_AI_RESPONSE = "malformed_ai_response"
    INVALID_USER_ID = "invalid_user_id"
