"""Host deletion event routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from autotranslate.logger import get_logger
from autotranslate.tagging.scanner import HostUnavailableError
from autotranslate.web.tasks import get_services, json_object

scopes_bp = Blueprint("scopes", __name__)
logger = get_logger(__name__)


@scopes_bp.post("/<kind>/<int:scope_id>/deleted")
def scope_deleted(kind: str, scope_id: int):
    data = json_object()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    course_id = data.get("course_id")
    try:
        if course_id is not None:
            course_id = int(course_id)
        result = get_services().events.handle_scope_deleted(kind, scope_id, course_id=course_id)
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except HostUnavailableError as e:
        logger.error(f"Deletion of {kind} {scope_id} not processed: {e}")
        return jsonify({"error": str(e), "code": "host_unavailable"}), 503
    return jsonify(result)
