"""
Test fixtures for Learning Buddy.

Provides app/client fixtures, in-memory local stores and an in-process
Firestore double. Gemini is mocked globally to avoid API calls during tests.
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(scope="session", autouse=True)
def mock_gemini():
    """Mock Google Generative AI globally to prevent API calls."""
    with patch.dict("sys.modules", {
        "google.generativeai": MagicMock(),
    }):
        yield


@pytest.fixture(autouse=True)
def reset_ai_state():
    """Circuit breaker and response cache are module singletons."""
    from ai_resilience import get_circuit, get_reply_cache
    get_circuit().reset()
    get_reply_cache().clear()
    yield
    get_circuit().reset()
    get_reply_cache().clear()


# ── Firestore double ──────────────────────────────────────


def _merge(base: dict, overlay: dict) -> dict:
    result = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


class FakeSnapshot:
    def __init__(self, data: dict | None):
        self._data = copy.deepcopy(data)
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeWatch:
    def __init__(self, listeners: list, callback):
        self._listeners = listeners
        self._callback = callback
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class FakeDocument:
    def __init__(self, client: "FakeFirestore", path: tuple[str, str]):
        self._client = client
        self.path = path

    def set(self, data: dict, merge: bool = False):
        if self._client.fail_with is not None:
            raise self._client.fail_with
        current = self._client.documents.get(self.path)
        if merge and current is not None:
            self._client.documents[self.path] = _merge(current, copy.deepcopy(data))
        else:
            self._client.documents[self.path] = copy.deepcopy(data)
        self._client.writes.append(("set", self.path, copy.deepcopy(data), merge))
        self._notify()

    def update(self, field_updates: dict):
        """Dotted keys are field paths; a missing document raises NotFound."""
        from google.api_core.exceptions import NotFound
        from local_store import apply_dotted_updates

        if self._client.fail_with is not None:
            raise self._client.fail_with
        current = self._client.documents.get(self.path)
        if current is None:
            raise NotFound("No document to update: " + "/".join(self.path))
        self._client.documents[self.path] = apply_dotted_updates(current, copy.deepcopy(field_updates))
        self._client.writes.append(("update", self.path, copy.deepcopy(field_updates), False))
        self._notify()

    def delete(self):
        if self._client.fail_with is not None:
            raise self._client.fail_with
        self._client.documents.pop(self.path, None)
        self._client.writes.append(("delete", self.path, None, False))
        self._notify()

    def _notify(self):
        for listener in list(self._client.listeners.get(self.path, [])):
            listener([self.get()], [], None)

    def get(self):
        if self._client.fail_with is not None:
            raise self._client.fail_with
        return FakeSnapshot(self._client.documents.get(self.path))

    def on_snapshot(self, callback):
        listeners = self._client.listeners.setdefault(self.path, [])
        listeners.append(callback)
        callback([self.get()], [], None)
        return FakeWatch(listeners, callback)


class FakeCollection:
    def __init__(self, client: "FakeFirestore", name: str):
        self._client = client
        self.name = name

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self._client, (self.name, doc_id))


class FakeFirestore:
    """Enough of google.cloud.firestore.Client for FirestoreProgressStore."""

    def __init__(self):
        self.documents: dict[tuple[str, str], dict] = {}
        self.listeners: dict[tuple[str, str], list] = {}
        self.writes: list[tuple] = []
        self.fail_with: Exception | None = None

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)


# ── Store / service fixtures ──────────────────────────────


@pytest.fixture
def local_store():
    from local_store import InMemoryStorage, LocalProgressStore
    return LocalProgressStore(InMemoryStorage())


@pytest.fixture
def fake_firestore():
    return FakeFirestore()


@pytest.fixture
def remote_store(fake_firestore):
    from remote_store import FirestoreProgressStore
    return FirestoreProgressStore(fake_firestore, "users")


@pytest.fixture
def local_service(local_store):
    """Progress service with no remote configured."""
    from progress_service import ProgressService
    return ProgressService(local_store)


@pytest.fixture
def remote_service(local_store, remote_store):
    """Progress service backed by the Firestore double."""
    from progress_service import ProgressService
    return ProgressService(local_store, remote_store)


# ── App fixtures ──────────────────────────────────────────


@pytest.fixture
def app():
    """App with in-memory local store and no remote or Gemini key."""
    from app import create_app
    from extensions import shutdown_services

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "LOCAL_STORE_PATH": "",
        "GOOGLE_API_KEY": "",
    })
    yield app
    shutdown_services(app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def progress_service(app):
    return app.extensions["progress_service"]
