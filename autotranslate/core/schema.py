"""
Database Schema Management Module

This module handles database initialization and schema validation.
For CRUD operations, see core/database.py
"""

import sqlite3

# Import the database module itself so tests can monkeypatch DB_FILE
import autotranslate.core.database as db

DB_VERSION = 1


def get_connection():
    """Get a database connection using the database module's DB_FILE."""
    return db.get_connection()


def get_db_version() -> int:
    """Get current database version."""
    try:
        with get_connection() as conn:
            row = conn.execute("SELECT version FROM db_version LIMIT 1").fetchone()
            return row[0] if row else 0
    except sqlite3.OperationalError:
        return 0


def set_db_version(version: int):
    """Set database version."""
    with get_connection() as conn:
        conn.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER)")
        conn.execute("DELETE FROM db_version")
        conn.execute("INSERT INTO db_version (version) VALUES (?)", (version,))


def initialize_database():
    """Create the tables and indexes if they do not exist yet."""
    from autotranslate.logger import get_logger
    logger = get_logger(__name__)

    with get_connection() as conn:
        conn.execute("PRAGMA journal_mode = WAL")

        conn.execute("""
        CREATE TABLE IF NOT EXISTS translations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            hash TEXT NOT NULL,
            lang TEXT NOT NULL,
            text TEXT NOT NULL,
            scope_kind TEXT,
            scope_id INTEGER,
            is_human_edited INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            modified_at TIMESTAMP NOT NULL,
            reviewed_at TIMESTAMP NOT NULL
        )
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS scope_mappings (
            hash TEXT NOT NULL,
            scope_id INTEGER NOT NULL,
            created_at TIMESTAMP,
            PRIMARY KEY (hash, scope_id)
        )
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS task_progress (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id TEXT NOT NULL,
            task_type TEXT NOT NULL,
            total_entries INTEGER NOT NULL DEFAULT 0,
            processed_entries INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'queued',
            failure_reason TEXT DEFAULT '',
            criteria TEXT,
            created_at TIMESTAMP NOT NULL,
            modified_at TIMESTAMP NOT NULL,
            CHECK (processed_entries <= total_entries),
            CHECK (status IN ('queued', 'running', 'completed', 'failed'))
        )
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS app_config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

    ensure_database_indexes()

    current_version = get_db_version()
    if current_version < DB_VERSION:
        set_db_version(DB_VERSION)
        logger.info(f"Database schema at version {DB_VERSION}")


def ensure_database_indexes():
    """Create the uniqueness and lookup indexes."""
    with get_connection() as conn:
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_translations_hash_lang "
            "ON translations (hash, lang)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_translations_lang ON translations (lang)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_scope_mappings_scope ON scope_mappings (scope_id)"
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_progress_task_id "
            "ON task_progress (task_id)"
        )
