from __future__ import annotations

from typing import Any

from flask import jsonify, request

from app.buildboard.ordering import InvalidTarget, NotFound, OrderingError


def request_payload() -> dict[str, Any]:
    """JSON body for API-style requests, form fields otherwise."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: Any, default: float | None = None) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def json_errors(errors: list[str], status: int = 400):
    return jsonify({"error": errors[0], "errors": errors}), status


def ordering_error_response(e: OrderingError):
    """NotFound -> 404, InvalidTarget (cycle) -> 409."""
    if isinstance(e, NotFound):
        return jsonify({"error": str(e), "kind": e.kind, "ref": e.ref}), 404
    if isinstance(e, InvalidTarget):
        return jsonify({"error": str(e), "dragged_id": e.dragged_id, "target_id": e.target_id}), 409
    return jsonify({"error": str(e)}), 400
