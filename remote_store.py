"""Remote progress store — one Firestore document per user.

``init_remote_store`` returns None whenever Firestore cannot be reached
(no credentials, bad key, missing package); callers treat None as
"remote unavailable" and stay on the local store.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict | None], None]


class FirestoreProgressStore:
    """Thin adapter over a Firestore collection. Errors propagate to the caller."""

    def __init__(self, client: Any, collection: str = "users") -> None:
        self._client = client
        self.collection = collection

    def _doc(self, user_id: str):
        return self._client.collection(self.collection).document(user_id)

    def set(self, user_id: str, data: dict, merge: bool = False) -> None:
        """Write the document; with ``merge`` nested mappings are merged into it."""
        self._doc(user_id).set(data, merge=merge)

    def update(self, user_id: str, field_updates: dict[str, Any]) -> None:
        """Apply ``{"a.b": value}`` field-path updates.

        Raises google.api_core.exceptions.NotFound when the document does
        not exist yet.
        """
        self._doc(user_id).update(field_updates)

    def delete(self, user_id: str) -> None:
        self._doc(user_id).delete()

    def get(self, user_id: str) -> dict | None:
        snapshot = self._doc(user_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def subscribe(self, user_id: str, callback: ProgressCallback) -> Callable[[], None]:
        """Push every change of the user's document to ``callback``.

        Returns a function that detaches the listener.
        """
        def on_snapshot(doc_snapshots, changes, read_time):
            for snapshot in doc_snapshots:
                try:
                    callback(snapshot.to_dict() if snapshot.exists else None)
                except Exception:
                    logger.exception("Progress listener failed (user=%s)", user_id)

        watch = self._doc(user_id).on_snapshot(on_snapshot)
        return watch.unsubscribe


def _load_credentials(config: dict):
    from firebase_admin import credentials

    key_b64 = config.get("FIREBASE_KEY_B64", "")
    if key_b64:
        cred_dict = json.loads(base64.b64decode(key_b64).decode("utf-8"))
        return credentials.Certificate(cred_dict)
    return credentials.Certificate(config["FIREBASE_CREDENTIALS"])


def init_remote_store(app) -> FirestoreProgressStore | None:
    """Connect to Firestore from app config, or return None."""
    config = app.config
    if not (config.get("FIREBASE_CREDENTIALS") or config.get("FIREBASE_KEY_B64")):
        app.logger.info("Progress remote store: disabled (no Firestore credentials).")
        return None

    try:
        import firebase_admin
        from firebase_admin import firestore

        try:
            fb_app = firebase_admin.get_app()
        except ValueError:
            fb_app = firebase_admin.initialize_app(_load_credentials(config))
        client = firestore.client(app=fb_app)
    except Exception as e:
        app.logger.warning("Firestore initialization failed (%s) — progress stored locally only.", e)
        return None

    collection = config.get("FIRESTORE_COLLECTION", "users")
    app.logger.info("Progress remote store: Firestore (collection=%s)", collection)
    return FirestoreProgressStore(client, collection)
