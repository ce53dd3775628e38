"""
Database CRUD Operations Module

This module handles all database CRUD operations for:
- Translations (one row per fingerprint and language)
- Scope mappings (fingerprint <-> course)
- Task progress
- App Config

For schema management, see core/schema.py
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

DB_FILE = Path(__file__).parent.parent.parent / "autotranslate.db"

BASE_LANGUAGE = "other"


@contextmanager
def get_connection():
    """Open a connection, commit on success, roll back on error, always close."""
    conn = sqlite3.connect(DB_FILE, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


# ============================================================
# Translation CRUD Operations
# ============================================================

def get_translation(hash_: str, lang: str) -> Optional[Dict[str, Any]]:
    """Get the translation of a fingerprint in one language."""
    with get_connection() as conn:
        row = conn.execute(
            "SELECT * FROM translations WHERE hash = ? AND lang = ?",
            (hash_, lang),
        ).fetchone()
        return dict(row) if row else None


def get_translations_for_hash(hash_: str) -> List[Dict[str, Any]]:
    """Get every language stored for a fingerprint."""
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM translations WHERE hash = ? ORDER BY lang",
            (hash_,),
        ).fetchall()
        return [dict(row) for row in rows]


def insert_translation_if_absent(hash_: str, lang: str, text: str,
                                 scope_kind: str = None, scope_id: int = None,
                                 is_human_edited: bool = False) -> bool:
    """Insert a translation unless (hash, lang) already exists. Returns True when inserted."""
    now = _now()
    with get_connection() as conn:
        cursor = conn.execute("""
            INSERT INTO translations
                (hash, lang, text, scope_kind, scope_id, is_human_edited,
                 created_at, modified_at, reviewed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(hash, lang) DO NOTHING
        """, (hash_, lang, text, scope_kind, scope_id,
              1 if is_human_edited else 0, now, now, now))
        return cursor.rowcount > 0


def upsert_translation(hash_: str, lang: str, text: str,
                       scope_kind: str = None, scope_id: int = None,
                       is_human_edited: bool = False) -> bool:
    """
    Create or merge a translation on the (hash, lang) key.

    A machine write never replaces a human-edited row; a human write always wins.
    The guard is part of the statement, so concurrent writers need no lock.

    Returns:
        True if a row was inserted or updated, False if the guard kept the existing row.
    """
    now = _now()
    with get_connection() as conn:
        cursor = conn.execute("""
            INSERT INTO translations
                (hash, lang, text, scope_kind, scope_id, is_human_edited,
                 created_at, modified_at, reviewed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(hash, lang) DO UPDATE SET
                text = excluded.text,
                scope_kind = COALESCE(excluded.scope_kind, translations.scope_kind),
                scope_id = COALESCE(excluded.scope_id, translations.scope_id),
                is_human_edited = excluded.is_human_edited,
                modified_at = excluded.modified_at,
                reviewed_at = excluded.reviewed_at
            WHERE translations.is_human_edited = 0 OR excluded.is_human_edited = 1
        """, (hash_, lang, text, scope_kind, scope_id,
              1 if is_human_edited else 0, now, now, now))
        return cursor.rowcount > 0


def update_machine_text(hash_: str, lang: str, text: str) -> bool:
    """Replace the text of a row that is not human-edited."""
    with get_connection() as conn:
        cursor = conn.execute("""
            UPDATE translations
            SET text = ?, modified_at = ?
            WHERE hash = ? AND lang = ? AND is_human_edited = 0
        """, (text, _now(), hash_, lang))
        return cursor.rowcount > 0


def mark_translations_for_revision(hash_: str, base_lang: str = BASE_LANGUAGE) -> int:
    """Touch modified_at on every non-base row of a fingerprint so it shows as needing review."""
    with get_connection() as conn:
        cursor = conn.execute("""
            UPDATE translations
            SET modified_at = ?
            WHERE hash = ? AND lang != ?
        """, (_now(), hash_, base_lang))
        return cursor.rowcount


def list_untranslated_hashes(lang: str, base_lang: str = BASE_LANGUAGE,
                             scope_id: int = None, limit: int = None) -> List[str]:
    """Fingerprints with a base record but no row in `lang`, oldest first."""
    sql = """
        SELECT t.hash FROM translations t
        WHERE t.lang = ?
        AND NOT EXISTS (
            SELECT 1 FROM translations t2
            WHERE t2.hash = t.hash AND t2.lang = ?
        )
    """
    params: List[Any] = [base_lang, lang]
    if scope_id is not None:
        sql += """
        AND EXISTS (
            SELECT 1 FROM scope_mappings m
            WHERE m.hash = t.hash AND m.scope_id = ?
        )
        """
        params.append(scope_id)
    sql += " ORDER BY t.id"
    if limit:
        sql += " LIMIT ?"
        params.append(int(limit))

    with get_connection() as conn:
        return [row["hash"] for row in conn.execute(sql, params).fetchall()]


def get_base_texts(hashes: List[str], base_lang: str = BASE_LANGUAGE) -> Dict[str, Dict[str, Any]]:
    """Base-language rows for a list of fingerprints, keyed by hash."""
    if not hashes:
        return {}
    result: Dict[str, Dict[str, Any]] = {}
    with get_connection() as conn:
        # SQLite caps bound parameters, so query in slices
        for start in range(0, len(hashes), 500):
            chunk = hashes[start:start + 500]
            rows = conn.execute(
                f"SELECT * FROM translations WHERE lang = ? AND hash IN ({_placeholders(chunk)})",
                [base_lang, *chunk],
            ).fetchall()
            for row in rows:
                result[row["hash"]] = dict(row)
    return result


def count_translations(lang: str = None) -> int:
    """Count translation rows, optionally for one language."""
    with get_connection() as conn:
        if lang is None:
            row = conn.execute("SELECT COUNT(*) FROM translations").fetchone()
        else:
            row = conn.execute("SELECT COUNT(*) FROM translations WHERE lang = ?", (lang,)).fetchone()
        return row[0]


def delete_orphan_translations() -> int:
    """Delete translations whose fingerprint has no scope mapping left."""
    with get_connection() as conn:
        cursor = conn.execute("""
            DELETE FROM translations
            WHERE NOT EXISTS (
                SELECT 1 FROM scope_mappings m WHERE m.hash = translations.hash
            )
        """)
        return cursor.rowcount


# ============================================================
# Scope Mapping CRUD Operations
# ============================================================

def add_scope_mapping(hash_: str, scope_id: int, base_lang: str = BASE_LANGUAGE) -> bool:
    """
    Map a fingerprint to a scope.

    The row is only inserted when the fingerprint has a base record, and a
    duplicate insert is a no-op. Returns True when a row was inserted.
    """
    with get_connection() as conn:
        cursor = conn.execute("""
            INSERT OR IGNORE INTO scope_mappings (hash, scope_id, created_at)
            SELECT ?, ?, ?
            WHERE EXISTS (
                SELECT 1 FROM translations WHERE hash = ? AND lang = ?
            )
        """, (hash_, scope_id, _now(), hash_, base_lang))
        return cursor.rowcount > 0


def scope_mapping_exists(hash_: str, scope_id: int) -> bool:
    with get_connection() as conn:
        row = conn.execute(
            "SELECT 1 FROM scope_mappings WHERE hash = ? AND scope_id = ?", (hash_, scope_id)
        ).fetchone()
        return row is not None


def get_scope_hashes(scope_id: int) -> List[str]:
    """All fingerprints mapped to a scope."""
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT hash FROM scope_mappings WHERE scope_id = ? ORDER BY hash",
            (scope_id,),
        ).fetchall()
        return [row["hash"] for row in rows]


def get_hash_scopes(hash_: str) -> List[int]:
    """All scopes a fingerprint is mapped to."""
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT scope_id FROM scope_mappings WHERE hash = ? ORDER BY scope_id",
            (hash_,),
        ).fetchall()
        return [row["scope_id"] for row in rows]


def get_mapped_scope_ids() -> List[int]:
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT DISTINCT scope_id FROM scope_mappings ORDER BY scope_id"
        ).fetchall()
        return [row["scope_id"] for row in rows]


def delete_scope_mappings(scope_id: int) -> int:
    """Delete every mapping of a scope."""
    with get_connection() as conn:
        cursor = conn.execute("DELETE FROM scope_mappings WHERE scope_id = ?", (scope_id,))
        return cursor.rowcount


def delete_scope_mapping(hash_: str, scope_id: int) -> bool:
    with get_connection() as conn:
        cursor = conn.execute(
            "DELETE FROM scope_mappings WHERE hash = ? AND scope_id = ?",
            (hash_, scope_id),
        )
        return cursor.rowcount > 0


def delete_dangling_mappings(base_lang: str = BASE_LANGUAGE) -> int:
    """Delete mappings whose fingerprint lost its base record."""
    with get_connection() as conn:
        cursor = conn.execute("""
            DELETE FROM scope_mappings
            WHERE NOT EXISTS (
                SELECT 1 FROM translations t
                WHERE t.hash = scope_mappings.hash AND t.lang = ?
            )
        """, (base_lang,))
        return cursor.rowcount


# ============================================================
# Task Progress CRUD Operations
# ============================================================

def create_task_progress(task_id: str, task_type: str, total_entries: int,
                         criteria: str = None, status: str = "queued") -> int:
    """Create a progress row for a queued task."""
    now = _now()
    with get_connection() as conn:
        cursor = conn.execute("""
            INSERT INTO task_progress
                (task_id, task_type, total_entries, processed_entries, status,
                 failure_reason, criteria, created_at, modified_at)
            VALUES (?, ?, ?, 0, ?, '', ?, ?, ?)
        """, (task_id, task_type, total_entries, status, criteria, now, now))
        return cursor.lastrowid


def get_task_progress(task_id: str) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        row = conn.execute(
            "SELECT * FROM task_progress WHERE task_id = ?", (task_id,)
        ).fetchone()
        return dict(row) if row else None


def get_tasks_by_status(status: str) -> List[Dict[str, Any]]:
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM task_progress WHERE status = ? ORDER BY id", (status,)
        ).fetchall()
        return [dict(row) for row in rows]


def update_task_progress(task_id: str, status: str = None, processed_entries: int = None,
                         failure_reason: str = None, allowed_from: List[str] = None) -> bool:
    """
    Update a progress row.

    processed_entries only moves forward and is capped at total_entries. When
    `allowed_from` is given the row is only updated if its current status is in it.

    Returns:
        True if the row was updated.
    """
    updates = ["modified_at = ?"]
    params: List[Any] = [_now()]

    if status is not None:
        updates.append("status = ?")
        params.append(status)
    if processed_entries is not None:
        updates.append("processed_entries = MIN(total_entries, MAX(processed_entries, ?))")
        params.append(int(processed_entries))
    if failure_reason is not None:
        updates.append("failure_reason = ?")
        params.append(failure_reason)

    sql = f"UPDATE task_progress SET {', '.join(updates)} WHERE task_id = ?"
    params.append(task_id)
    if allowed_from:
        sql += f" AND status IN ({_placeholders(allowed_from)})"
        params.extend(allowed_from)

    with get_connection() as conn:
        cursor = conn.execute(sql, params)
        return cursor.rowcount > 0


# ============================================================
# App Config CRUD Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get a configuration value by key."""
    with get_connection() as conn:
        row = conn.execute("SELECT value FROM app_config WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set a configuration value."""
    with get_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, value, _now()))

