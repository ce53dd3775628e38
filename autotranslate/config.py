import copy
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from autotranslate.core import database as db
from autotranslate.core.schema import initialize_database
from autotranslate.logger import get_logger

logger = get_logger(__name__)

IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

# Scope id for content that belongs to no course
SITE_SCOPE_ID = 0

LOG_MODES = ("off", "info", "debug")

DEFAULT_SYSTEM_MESSAGE = (
    "You are a professional translator. Translate the user's text and return only the "
    "translation. Preserve HTML tags, attributes and placeholders exactly."
)

# Tables and fields scanned by the tagging pass. Field values say whether the
# stored content is HTML or plain text.
DEFAULT_TABLES = [
    {
        "table": "course",
        "scope_kind": "course",
        "scope_column": "id",
        "fields": {"fullname": "plain", "shortname": "plain", "summary": "html"},
    },
    {
        "table": "course_sections",
        "scope_kind": "section",
        "scope_column": "course",
        "fields": {"name": "plain", "summary": "html"},
    },
    {
        "table": "course_categories",
        "scope_kind": "category",
        "scope_column": None,
        "fields": {"description": "html"},
    },
    {
        "table": "page",
        "scope_kind": "module",
        "scope_column": "course",
        "fields": {"name": "plain", "intro": "html", "content": "html"},
    },
    {
        "table": "label",
        "scope_kind": "module",
        "scope_column": "course",
        "fields": {"name": "plain", "intro": "html"},
    },
    {
        "table": "book",
        "scope_kind": "module",
        "scope_column": "course",
        "fields": {"name": "plain", "intro": "html"},
    },
    {
        "table": "book_chapters",
        "scope_kind": "module",
        "parent_table": "book",
        "parent_fk": "bookid",
        "parent_scope_column": "course",
        "fields": {"title": "plain", "content": "html"},
    },
]

DEFAULT_CONFIG = {
    "site_language": "en",
    "log_mode": "off",
    "host_database": None,
    "provider": {
        "api_url": "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions",
        "api_key": "YOUR_API_KEY_HERE",
        "model": "gemini-2.5-flash",
        "timeout": 120,
        "system_message": DEFAULT_SYSTEM_MESSAGE,
    },
    "fetch": {
        "batch_size": 10,
        "max_attempts": 3,
        "retry_backoff_seconds": 5,
        "target_languages": [],
    },
    "scheduler": {
        "tagging_interval_seconds": 0,
        "purge_interval_seconds": 0,
    },
    "tagging": {
        "page_size": 200,
        "tables": DEFAULT_TABLES,
    },
}


class ConfigError(ValueError):
    """Raised when the tagging configuration is unusable."""


def _check_identifier(value: str, what: str) -> str:
    if not isinstance(value, str) or not re.match(IDENTIFIER_PATTERN, value):
        raise ConfigError(f"Invalid {what}: {value!r}")
    return value


@dataclass
class TableSpec:
    """One allow-listed host table and the fields to tag in it."""
    table: str
    fields: Dict[str, bool]  # field name -> is_html
    scope_kind: str = "course"
    scope_column: Optional[str] = None  # None => site scope unless a parent is configured
    parent_table: Optional[str] = None
    parent_fk: Optional[str] = None
    parent_scope_column: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableSpec":
        table = _check_identifier(data.get("table"), "table name")
        raw_fields = data.get("fields") or {}
        if isinstance(raw_fields, list):
            # A bare list means plain-text fields
            raw_fields = {name: "plain" for name in raw_fields}
        if not isinstance(raw_fields, dict) or not raw_fields:
            raise ConfigError(f"Table {table!r} has no fields configured")

        fields = {}
        for name, kind in raw_fields.items():
            _check_identifier(name, f"field name in {table}")
            if kind not in ("html", "plain"):
                raise ConfigError(f"Field {table}.{name} must be 'html' or 'plain', got {kind!r}")
            fields[name] = kind == "html"

        spec = cls(
            table=table,
            fields=fields,
            scope_kind=data.get("scope_kind") or "course",
            scope_column=data.get("scope_column"),
            parent_table=data.get("parent_table"),
            parent_fk=data.get("parent_fk"),
            parent_scope_column=data.get("parent_scope_column"),
        )
        for attr in ("scope_column", "parent_table", "parent_fk", "parent_scope_column"):
            value = getattr(spec, attr)
            if value is not None:
                _check_identifier(value, f"{attr} of {table}")
        if spec.parent_table and not (spec.parent_fk and spec.parent_scope_column):
            raise ConfigError(f"Table {table!r} needs parent_fk and parent_scope_column")
        return spec


@dataclass
class TaggingConfig:
    tables: List[TableSpec] = field(default_factory=list)
    page_size: int = 200

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaggingConfig":
        tables = [TableSpec.from_dict(item) for item in data.get("tables", [])]
        page_size = int(data.get("page_size") or 200)
        if page_size < 1:
            raise ConfigError("page_size must be positive")
        return cls(tables=tables, page_size=page_size)


@dataclass
class FetchSettings:
    batch_size: int = 10
    max_attempts: int = 3
    retry_backoff_seconds: float = 5.0
    target_languages: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FetchSettings":
        return cls(
            batch_size=max(1, int(data.get("batch_size") or 10)),
            max_attempts=max(1, int(data.get("max_attempts") or 3)),
            retry_backoff_seconds=float(data.get("retry_backoff_seconds", 5)),
            target_languages=list(data.get("target_languages") or []),
        )


@dataclass
class ProviderSettings:
    api_url: str = ""
    api_key: str = ""
    model: str = ""
    timeout: Any = 120
    system_message: str = DEFAULT_SYSTEM_MESSAGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderSettings":
        return cls(
            api_url=data.get("api_url", ""),
            api_key=data.get("api_key", ""),
            model=data.get("model", ""),
            timeout=data.get("timeout", 120),
            system_message=data.get("system_message") or DEFAULT_SYSTEM_MESSAGE,
        )


@dataclass
class SchedulerSettings:
    tagging_interval_seconds: float = 0
    purge_interval_seconds: float = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchedulerSettings":
        return cls(
            tagging_interval_seconds=float(data.get("tagging_interval_seconds") or 0),
            purge_interval_seconds=float(data.get("purge_interval_seconds") or 0),
        )


@dataclass
class Settings:
    """Typed view over the configuration document, handed to the pipeline explicitly."""
    site_language: str = "en"
    base_language: str = db.BASE_LANGUAGE
    host_database: Optional[str] = None
    tagging: TaggingConfig = field(default_factory=TaggingConfig)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Settings":
        merged = merge_with_defaults(config)
        return cls(
            site_language=merged.get("site_language") or "en",
            host_database=merged.get("host_database"),
            tagging=TaggingConfig.from_dict(merged["tagging"]),
            fetch=FetchSettings.from_dict(merged["fetch"]),
            provider=ProviderSettings.from_dict(merged["provider"]),
            scheduler=SchedulerSettings.from_dict(merged["scheduler"]),
        )


def merge_with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing keys (one level deep) from DEFAULT_CONFIG."""
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in (config or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def initialize_app():
    """
    Initialize the application.
    Creates the database and stores the default configuration on first run.
    """
    logger.info("Initializing application...")

    initialize_database()
    logger.info("Database initialized")

    try:
        if not db.get_app_config('config'):
            logger.info("No config in database, initializing default config")
            save_config(DEFAULT_CONFIG)
        else:
            logger.debug("Config already exists in database")
    except Exception as e:
        logger.error(f"Failed to check/initialize config in database: {e}")
        logger.warning("Application will use in-memory default configuration")

    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from database, falling back to defaults."""
    try:
        config_json = db.get_app_config('config')
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not config_json:
        logger.debug("No config in database, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        config = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    logger.debug("Configuration loaded from database")
    return merge_with_defaults(config)


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise

    from autotranslate.logger import clear_log_mode_cache
    clear_log_mode_cache()


def load_settings() -> Settings:
    """Build the typed settings from the stored configuration."""
    return Settings.from_dict(load_config())


def load_log_mode() -> str:
    """Read log_mode without creating the database as a side effect."""
    if not db.DB_FILE.exists():
        return DEFAULT_CONFIG["log_mode"]
    config_json = db.get_app_config('config')
    if not config_json:
        return DEFAULT_CONFIG["log_mode"]
    log_mode = json.loads(config_json).get('log_mode', DEFAULT_CONFIG["log_mode"])
    return log_mode if log_mode in LOG_MODES else "info"
