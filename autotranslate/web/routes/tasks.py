"""Fetch task API routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from autotranslate.ai.exceptions import TranslationError
from autotranslate.logger import get_logger
from autotranslate.translation.fetcher import FetchCriteria
from autotranslate.web.tasks import get_services, json_object

tasks_bp = Blueprint("tasks", __name__)
logger = get_logger(__name__)


@tasks_bp.post("")
def queue_task():
    """Queue a fetch task for the untranslated entries of one language."""
    services = get_services()
    try:
        criteria = FetchCriteria.from_dict(json_object())
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    try:
        services.check_provider()
    except TranslationError as e:
        logger.warning("Provider configuration validation failed: %s", e)
        error_response = {"error": str(e), "code": e.code or "provider_config_error"}
        if e.details:
            error_response["details"] = e.details
        return jsonify(error_response), 400

    try:
        task_id = services.tracker.enqueue(criteria)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    services.worker.submit(task_id)
    return jsonify({"task_id": task_id}), 202


@tasks_bp.get("/<task_id>")
def get_task_status(task_id: str):
    """Poll a task: {status, percentage}."""
    status = get_services().tracker.poll(task_id)
    if status is None:
        return jsonify({"error": "Task not found"}), 404
    return jsonify(status)
