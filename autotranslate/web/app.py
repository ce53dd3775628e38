"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from autotranslate.logger import get_logger

from .routes.scopes import scopes_bp
from .routes.tagging import tagging_bp
from .routes.tasks import tasks_bp
from .routes.translations import translations_bp
from .tasks import EXTENSION_KEY, Services, get_services

logger = get_logger(__name__)


def build_app(services: Services) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.config["JSON_AS_ASCII"] = False
    app.json.ensure_ascii = False
    app.extensions[EXTENSION_KEY] = services

    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(tasks_bp, url_prefix="/api/tasks")
    app.register_blueprint(translations_bp, url_prefix="/api")
    app.register_blueprint(scopes_bp, url_prefix="/api/scopes")
    app.register_blueprint(tagging_bp, url_prefix="/api/tagging")


def register_default_routes(app: Flask) -> None:
    """Register the health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        services = get_services()
        return jsonify({"status": "ok", "worker_running": services.worker.running})

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
