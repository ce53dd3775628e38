"""Translation record and rendering routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from autotranslate.logger import get_logger
from autotranslate.tagging.fingerprint import is_fingerprint
from autotranslate.web.tasks import get_services, json_object

translations_bp = Blueprint("translations", __name__)
logger = get_logger(__name__)


@translations_bp.get("/translations/<hash_>/<lang>")
def get_translation(hash_: str, lang: str):
    record = get_services().store.find(hash_, lang)
    if record is None:
        return jsonify({"error": "Translation not found"}), 404
    return jsonify(record.to_dict())


@translations_bp.put("/translations/<hash_>/<lang>")
def save_translation(hash_: str, lang: str):
    """Store a human translation. It is never replaced by machine fetches."""
    store = get_services().store
    data = json_object()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        return jsonify({"error": "text must be a non-empty string"}), 400
    if not is_fingerprint(hash_) or store.get_source_text(hash_) is None:
        return jsonify({"error": "Unknown identifier"}), 404

    record = store.save_human_translation(hash_, lang, text)
    logger.info("Human translation saved for %s/%s", hash_, record.lang)
    return jsonify(record.to_dict())


@translations_bp.post("/render")
def render_text():
    """Replace marked segments with their translation in `lang`."""
    data = json_object()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    text = data.get("text")
    lang = data.get("lang")
    if not isinstance(text, str) or not isinstance(lang, str) or not lang:
        return jsonify({"error": "text and lang are required"}), 400
    return jsonify({"text": get_services().filter.filter(text, lang)})
