"""Tagging pass routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from autotranslate.logger import get_logger
from autotranslate.web.tasks import get_services, json_object

tagging_bp = Blueprint("tagging", __name__)
logger = get_logger(__name__)


@tagging_bp.post("/run")
def run_tagging():
    """Run a tagging pass now, optionally limited to one scope, and return its summary."""
    data = json_object()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    scope_id = data.get("scope_id")
    if scope_id is not None:
        try:
            scope_id = int(scope_id)
        except (TypeError, ValueError):
            return jsonify({"error": "scope_id must be an integer"}), 400

    summary = get_services().run_tagging(scope_id=scope_id)
    return jsonify(summary.to_dict())
