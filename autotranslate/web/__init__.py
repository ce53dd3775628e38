"""Web application package for autotranslate."""

from typing import Any, Dict, Optional

from flask import Flask

from autotranslate.config import initialize_app, load_config, load_settings, save_config


def _apply_overrides(overrides: Dict[str, Any]) -> None:
    config = load_config()
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    save_config(config)


def create_app(config_overrides: Optional[Dict[str, Any]] = None, provider=None,
               start_background: bool = True) -> Flask:
    """
    Application factory.

    Args:
        config_overrides: Stored into the configuration before it is read.
        provider: Translation provider to use instead of the configured one.
        start_background: Start the fetch worker and periodic jobs.
    """
    initialize_app()
    if config_overrides:
        _apply_overrides(config_overrides)

    from .app import build_app  # Import here to avoid circular imports
    from .tasks import build_services, start_background as start_jobs

    services = build_services(load_settings(), provider=provider)
    app = build_app(services)
    if start_background:
        start_jobs(services)
    return app


__all__ = ["create_app"]
