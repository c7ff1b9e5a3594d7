"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from typing import Any

from flask import abort, jsonify, make_response, request


def json_body(required: tuple[str, ...] = ()) -> dict[str, Any]:
    """Return the request's JSON object, aborting with 400 when it is not one."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(make_response(jsonify({"error": "Request body must be a JSON object"}), 400))
    missing = [key for key in required if key not in data]
    if missing:
        abort(make_response(jsonify({"error": f"Missing field(s): {', '.join(missing)}"}), 400))
    return data


def optional_json_body() -> dict[str, Any] | None:
    """JSON body that may legitimately be ``null`` (e.g. saving "no data")."""
    if not request.data or request.data.strip() == b"null":
        return None
    return json_body()
