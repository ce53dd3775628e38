"""Route blueprints for the web application."""

from .scopes import scopes_bp
from .tagging import tagging_bp
from .tasks import tasks_bp
from .translations import translations_bp

__all__ = [
    "scopes_bp",
    "tagging_bp",
    "tasks_bp",
    "translations_bp",
]
