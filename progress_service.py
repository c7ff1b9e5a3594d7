"""Progress Service — single entry point for reading and writing user progress.

Writes go to Firestore when it is live and are mirrored into the local
store as a cache; when Firestore is unavailable or a call fails, the local
store takes the operation on its own. No operation raises: writes return a
truthy PersistResult, reads return the document or None.

PersistResult keeps the best-effort contract (always truthy) while exposing
which backend took the write and why it degraded, for callers that care.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from errors import ErrorKind
from local_store import LocalProgressStore
from remote_store import FirestoreProgressStore, ProgressCallback

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("userName", "grade", "targetExamYear", "examDate", "onboardingComplete", "email")


@dataclass(frozen=True)
class PersistResult:
    """Outcome of a best-effort write."""

    ok: bool = True
    backend: str | None = None  # "remote" | "local" | None
    error: ErrorKind | None = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def degraded(self) -> bool:
        return self.backend != "remote"

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "backend": self.backend,
            "degraded": self.degraded,
            "error": self.error.value if self.error else None,
        }


def _now() -> str:
    return datetime.now().isoformat()


def build_profile(data: dict | None) -> dict:
    """Collect profile fields from the top level and from a nested ``profile`` mapping.

    Nested values win. ``examYear`` from the wizard is accepted for
    ``targetExamYear``. Fields that are absent stay absent.
    """
    data = data if isinstance(data, dict) else {}
    profile: dict[str, Any] = {}
    if "examYear" in data and "targetExamYear" not in data:
        profile["targetExamYear"] = data["examYear"]
    for key in PROFILE_FIELDS:
        if key in data:
            profile[key] = data[key]
    nested = data.get("profile")
    if isinstance(nested, dict):
        profile.update(nested)
    return profile


def subject_records(subject_ids: list, topics: dict | None = None) -> dict:
    """Wizard subject ids -> the ``subjects`` mapping of a progress document."""
    topics = topics if isinstance(topics, dict) else {}
    return {
        str(sid): {"selected": True, "topics": list(topics.get(sid, []))}
        for sid in subject_ids
    }


def _no_op_unsubscribe() -> None:
    return None


class ProgressService:
    """Remote-first persistence with a local fallback."""

    def __init__(
        self,
        local: LocalProgressStore,
        remote: FirestoreProgressStore | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def remote_available(self) -> bool:
        return self.remote is not None

    @property
    def backend_name(self) -> str:
        return "firestore" if self.remote_available else "local"

    # ── Internal write path ────────────────────────────────

    def _write(
        self,
        user_id: str,
        remote_write: Callable[[FirestoreProgressStore], None],
        local_write: Callable[[LocalProgressStore], bool],
        operation: str,
    ) -> PersistResult:
        if not user_id:
            logger.warning("%s called without a user id; nothing written.", operation)
            return PersistResult(error=ErrorKind.INVALID_USER_ID)

        error: ErrorKind | None = None
        if self.remote is None:
            error = ErrorKind.REMOTE_UNAVAILABLE
        else:
            try:
                remote_write(self.remote)
            except Exception as e:
                logger.warning("%s: remote write failed (user=%s), using local store: %s", operation, user_id, e)
                error = ErrorKind.REMOTE_FAILURE
            else:
                # Local copy mirrors the remote document
                if not local_write(self.local):
                    logger.debug("%s: local mirror not updated (user=%s)", operation, user_id)
                return PersistResult(backend="remote")

        if local_write(self.local):
            return PersistResult(backend="local", error=error)
        logger.error("%s: progress for user=%s was not persisted anywhere", operation, user_id)
        return PersistResult(backend=None, error=ErrorKind.LOCAL_FAILURE)

    # ── Operations ─────────────────────────────────────────

    def create_user_profile(self, user_id: str, profile_data: dict | None) -> PersistResult:
        """Create the user's progress document from profile data."""
        now = _now()
        document = {
            "profile": build_profile(profile_data),
            "subjects": {},
            "gamification": {"points": 0, "streak": 0, "badges": []},
            "createdAt": now,
            "updatedAt": now,
        }
        return self._write(
            user_id,
            lambda remote: remote.set(user_id, document),
            lambda local: local.save_user_progress_local(user_id, document),
            "create_user_profile",
        )

    def complete_onboarding(self, user_id: str, onboarding_data: dict | None) -> PersistResult:
        """Merge onboarding answers into the record and flag onboarding complete."""
        data = dict(onboarding_data) if isinstance(onboarding_data, dict) else {}
        profile = build_profile(data)
        profile["onboardingComplete"] = True

        fields = {k: v for k, v in data.items() if k not in PROFILE_FIELDS and k not in ("profile", "examYear")}
        if isinstance(fields.get("subjects"), list):
            fields["subjects"] = subject_records(fields["subjects"], fields.pop("topics", None))
        fields.update({
            "profile": profile,
            "onboardingComplete": True,
            "onboardingCompletedAt": _now(),
            "updatedAt": _now(),
        })
        return self._write(
            user_id,
            lambda remote: remote.set(user_id, fields, merge=True),
            lambda local: local.merge_user_progress_local(user_id, fields),
            "complete_onboarding",
        )

    def update_user_data(self, user_id: str, updates: dict[str, Any]) -> PersistResult:
        """Apply dotted-path updates (``{"gamification.points": 200}``).

        Each key replaces the value at its path in both stores; a mapping
        value replaces the whole mapping. Without a remote document to
        update, the write lands in the local store.
        """
        updates = dict(updates) if isinstance(updates, dict) else {}
        updates.setdefault("updatedAt", _now())
        return self._write(
            user_id,
            lambda remote: remote.update(user_id, updates),
            lambda local: local.update_user_progress_local(user_id, updates),
            "update_user_data",
        )

    def save_user_progress(self, user_id: str, progress: dict | None) -> PersistResult:
        """Overwrite the whole document. ``None`` clears it."""
        def remote_write(remote: FirestoreProgressStore) -> None:
            if progress is None:
                remote.delete(user_id)
            else:
                remote.set(user_id, progress)

        return self._write(
            user_id,
            remote_write,
            lambda local: local.save_user_progress_local(user_id, progress),
            "save_user_progress",
        )

    def get_user_progress(self, user_id: str) -> dict | None:
        """Return the user's document, or None when neither store has one."""
        if not user_id:
            return None

        if self.remote is not None:
            try:
                document = self.remote.get(user_id)
            except Exception as e:
                logger.warning("Remote read failed (user=%s), using local store: %s", user_id, e)
            else:
                if document is not None:
                    self.local.save_user_progress_local(user_id, document)
                    return document

        return self.local.get_user_progress_local(user_id)

    def subscribe_to_user_progress(self, user_id: str, callback: ProgressCallback) -> Callable[[], None]:
        """Call ``callback`` with the user's document whenever it changes.

        Without a live remote the callback fires once with the current local
        document and the returned unsubscribe does nothing.
        """
        if user_id and self.remote is not None:
            try:
                unsubscribe = self.remote.subscribe(user_id, callback)
            except Exception as e:
                logger.warning("Remote subscribe failed (user=%s), using local store: %s", user_id, e)
            else:
                self._unsubscribers.append(unsubscribe)
                return self._tracked(unsubscribe)

        try:
            callback(self.local.get_user_progress_local(user_id) if user_id else None)
        except Exception:
            logger.exception("Progress listener failed (user=%s)", user_id)
        return _no_op_unsubscribe

    def _tracked(self, unsubscribe: Callable[[], None]) -> Callable[[], None]:
        def detach() -> None:
            if unsubscribe in self._unsubscribers:
                self._unsubscribers.remove(unsubscribe)
            try:
                unsubscribe()
            except Exception as e:
                logger.warning("Unsubscribe failed: %s", e)
        return detach

    def clear_all_local_data(self) -> int:
        return self.local.clear_all_local_data()

    def close(self) -> None:
        """Detach live listeners and release the local backend."""
        for unsubscribe in list(self._unsubscribers):
            try:
                unsubscribe()
            except Exception as e:
                logger.warning("Unsubscribe failed during close: %s", e)
        self._unsubscribers.clear()
        self.local.close()
