"""Local progress store — key-value fallback for per-user progress documents.

Documents are JSON-serialised under ``learning_buddy:progress:<user_id>`` in a
storage backend exposing the familiar get_item / set_item / remove_item / keys
surface. Two backends ship:

- InMemoryStorage: a dict, lives as long as the process
- SQLiteStorage: a single key/value table in a WAL-mode SQLite file

Every public LocalProgressStore method swallows storage errors, logs them,
and reports failure through its return value.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from typing import Any, Iterator, Protocol

logger = logging.getLogger(__name__)

KEY_PREFIX = "learning_buddy:progress:"


class StorageError(Exception):
    """Raised by a storage backend when it cannot complete an operation."""


# ── Backends ───────────────────────────────────────────────

class StorageBackend(Protocol):
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
    def keys(self) -> Iterator[str]: ...
    def close(self) -> None: ...


class InMemoryStorage:
    """Dict-backed storage for tests and credential-less development."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._store.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._store[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            snapshot = list(self._store)
        return iter(snapshot)

    def close(self) -> None:
        pass


class SQLiteStorage:
    """Single-table key/value storage in a SQLite file.

    One connection is shared across threads behind a lock; each write
    commits immediately.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(self.SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open local store at {path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, str(value)),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    def remove_item(self, key: str) -> None:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    def keys(self) -> Iterator[str]:
        try:
            with self._lock:
                rows = self._conn.execute("SELECT key FROM kv_store").fetchall()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        return iter([r[0] for r in rows])

    def close(self) -> None:
        with self._lock:
            self._conn.close()


# ── Dotted-path merge ──────────────────────────────────────

def apply_dotted_updates(document: dict | None, updates: dict[str, Any]) -> dict:
    """Return a copy of ``document`` with each ``"a.b.c": value`` update applied.

    Intermediate mappings are created as needed; a non-dict value sitting on
    the path is replaced by a mapping.
    """
    result = copy.deepcopy(document) if isinstance(document, dict) else {}
    for path, value in updates.items():
        parts = [p for p in str(path).split(".") if p]
        if not parts:
            continue
        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return result


# ── Store ──────────────────────────────────────────────────

class LocalProgressStore:
    """UserProgress documents over a StorageBackend."""

    def __init__(self, backend: StorageBackend | None = None) -> None:
        self.backend = backend if backend is not None else InMemoryStorage()

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"{KEY_PREFIX}{user_id}"

    def save_user_progress_local(self, user_id: str, data: dict | None) -> bool:
        """Overwrite the cached document. ``None`` is stored as "no data"."""
        try:
            self.backend.set_item(self.key_for(user_id), json.dumps(data, default=str))
            return True
        except Exception as e:
            logger.warning("Local store write failed (user=%s): %s", user_id, e)
            return False

    def get_user_progress_local(self, user_id: str) -> dict | None:
        try:
            raw = self.backend.get_item(self.key_for(user_id))
        except Exception as e:
            logger.warning("Local store read failed (user=%s): %s", user_id, e)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding undecodable local record (user=%s)", user_id)
            return None
        return data if isinstance(data, dict) else None

    def update_user_progress_local(self, user_id: str, updates: dict[str, Any]) -> bool:
        """Read-merge-write; not atomic against concurrent writers."""
        current = self.get_user_progress_local(user_id)
        return self.save_user_progress_local(user_id, apply_dotted_updates(current, updates))

    def merge_user_progress_local(self, user_id: str, data: dict) -> bool:
        """Deep-merge ``data`` into the cached document."""
        current = self.get_user_progress_local(user_id) or {}
        return self.save_user_progress_local(user_id, deep_merge(current, data))

    def clear_all_local_data(self) -> int:
        """Remove every progress record. Returns the number removed."""
        removed = 0
        try:
            for key in list(self.backend.keys()):
                if key.startswith(KEY_PREFIX):
                    self.backend.remove_item(key)
                    removed += 1
        except Exception as e:
            logger.warning("Local store clear failed after %d records: %s", removed, e)
        return removed

    def close(self) -> None:
        try:
            self.backend.close()
        except Exception as e:
            logger.warning("Local store close failed: %s", e)


def deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge ``overlay`` into a copy of ``base`` (mappings merge, other values replace)."""
    result = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def create_local_store(path: str = "") -> LocalProgressStore:
    """Build a store on SQLite when ``path`` is set, in-memory otherwise.

    An unopenable SQLite path degrades to in-memory storage.
    """
    if path:
        try:
            return LocalProgressStore(SQLiteStorage(path))
        except StorageError as e:
            logger.warning("%s — falling back to in-memory local store.", e)
    return LocalProgressStore(InMemoryStorage())
