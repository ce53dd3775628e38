"""
Pytest configuration and fixtures for testing autotranslate.
"""

import sqlite3

import pytest

import autotranslate.core.database as db
from autotranslate.config import Settings
from autotranslate.core.schema import initialize_database
from autotranslate.tagging.fingerprint import fingerprint
from autotranslate.translation.store import TranslationRecord, TranslationStore
from autotranslate.web import create_app

HOST_SCHEMA = """
CREATE TABLE course (id INTEGER PRIMARY KEY, fullname TEXT, shortname TEXT, summary TEXT);
CREATE TABLE course_sections (id INTEGER PRIMARY KEY, course INTEGER, name TEXT, summary TEXT);
CREATE TABLE course_categories (id INTEGER PRIMARY KEY, description TEXT);
CREATE TABLE page (id INTEGER PRIMARY KEY, course INTEGER, name TEXT, intro TEXT, content TEXT);
CREATE TABLE label (id INTEGER PRIMARY KEY, course INTEGER, name TEXT, intro TEXT);
CREATE TABLE book (id INTEGER PRIMARY KEY, course INTEGER, name TEXT, intro TEXT);
CREATE TABLE book_chapters (id INTEGER PRIMARY KEY, bookid INTEGER, title TEXT, content TEXT);
"""


class HostDB:
    """Small helper around the host CMS test database."""

    def __init__(self, path):
        self.path = path
        with sqlite3.connect(path) as conn:
            conn.executescript(HOST_SCHEMA)

    def insert(self, table, **values):
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with sqlite3.connect(self.path) as conn:
            cursor = conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", list(values.values())
            )
            return cursor.lastrowid

    def get(self, table, row_id, field):
        with sqlite3.connect(self.path) as conn:
            row = conn.execute(f"SELECT {field} FROM {table} WHERE id = ?", (row_id,)).fetchone()
            return row[0] if row else None

    def delete(self, table, row_id):
        with sqlite3.connect(self.path) as conn:
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))


class FakeProvider:
    """Scripted provider: translations are '[lang] text' unless an error is queued."""

    def __init__(self):
        self.calls = []
        self.errors = {}
        self.default_error = None

    def translate(self, text, source_lang, target_lang):
        self.calls.append((text, source_lang, target_lang))
        pending = self.errors.get(text)
        if pending:
            raise pending.pop(0)
        if self.default_error is not None:
            raise self.default_error
        return f"[{target_lang}] {text}"


@pytest.fixture(autouse=True)
def app_db(tmp_path, monkeypatch):
    """Point the application database at a fresh temporary file."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "autotranslate.db")
    initialize_database()
    return db.DB_FILE


@pytest.fixture
def host_db(tmp_path):
    return HostDB(tmp_path / "host.db")


@pytest.fixture
def settings(host_db):
    return Settings.from_dict({
        "host_database": str(host_db.path),
        "fetch": {"batch_size": 10, "max_attempts": 3, "retry_backoff_seconds": 0},
    })


@pytest.fixture
def store():
    return TranslationStore("other", "en")


@pytest.fixture
def add_source(store):
    """Create a base record for `text` mapped to the given scopes; returns its identifier."""

    def _add(text, *scope_ids):
        identifier = fingerprint(text)
        store.upsert(TranslationRecord(hash=identifier, lang="other", text=text))
        for scope_id in scope_ids or (1,):
            store.add_scope_mapping(identifier, scope_id)
        return identifier

    return _add


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def app(app_db, host_db, provider):
    """Create application for testing, without background threads."""
    app = create_app(
        config_overrides={
            "host_database": str(host_db.path),
            "fetch": {"retry_backoff_seconds": 0},
        },
        provider=provider,
        start_background=False,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["autotranslate"]
