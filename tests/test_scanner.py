"""
Tests for the content scanner and host storage access.
"""

import sqlite3

import pytest

from autotranslate.config import TaggingConfig
from autotranslate.tagging.host import HostContentStore
from autotranslate.tagging.scanner import ContentScanner, HostUnavailableError


def make_scanner(host_db, tables, page_size=200):
    config = TaggingConfig.from_dict({"tables": tables, "page_size": page_size})
    return ContentScanner(config, HostContentStore(host_db.path))


PAGE_TABLE = {
    "table": "page",
    "scope_kind": "module",
    "scope_column": "course",
    "fields": {"name": "plain", "content": "html"},
}


class TestScan:

    def test_yields_fields_with_scope_and_html_flag(self, host_db):
        row_id = host_db.insert("page", course=7, name="Intro", content="<p>Hello</p>")
        refs = list(make_scanner(host_db, [PAGE_TABLE]).scan())

        assert [(r.field, r.raw_content, r.is_html) for r in refs] == [
            ("name", "Intro", False),
            ("content", "<p>Hello</p>", True),
        ]
        assert all(r.scope_id == 7 for r in refs)
        assert refs[1].field_path == f"page.{row_id}.content"
        assert refs[1].scope_kind == "module"

    def test_skips_empty_and_null_fields(self, host_db):
        host_db.insert("page", course=1, name="", content=None)
        host_db.insert("page", course=1, name="   ", content="Body")
        refs = list(make_scanner(host_db, [PAGE_TABLE]).scan())
        assert [r.raw_content for r in refs] == ["Body"]

    def test_paginates_through_all_rows(self, host_db):
        for i in range(5):
            host_db.insert("page", course=1, name=f"Page {i}", content=None)
        refs = list(make_scanner(host_db, [PAGE_TABLE], page_size=2).scan())
        assert [r.raw_content for r in refs] == [f"Page {i}" for i in range(5)]

    def test_restartable(self, host_db):
        host_db.insert("page", course=1, name="One", content=None)
        scanner = make_scanner(host_db, [PAGE_TABLE])
        assert list(scanner.scan()) == list(scanner.scan())

    def test_scope_filter(self, host_db):
        host_db.insert("page", course=1, name="In one", content=None)
        host_db.insert("page", course=2, name="In two", content=None)
        refs = list(make_scanner(host_db, [PAGE_TABLE]).scan(scope_id=2))
        assert [r.raw_content for r in refs] == ["In two"]

    def test_course_table_is_its_own_scope(self, host_db):
        course_id = host_db.insert("course", fullname="Biology", shortname="BIO", summary="")
        tables = [{"table": "course", "scope_column": "id", "fields": {"fullname": "plain"}}]
        refs = list(make_scanner(host_db, tables).scan())
        assert refs[0].scope_id == course_id

    def test_site_scope_without_scope_column(self, host_db):
        host_db.insert("course_categories", description="<p>Science</p>")
        tables = [{"table": "course_categories", "scope_kind": "category", "fields": {"description": "html"}}]
        refs = list(make_scanner(host_db, tables).scan())
        assert refs[0].scope_id == 0

    def test_scope_through_parent_row(self, host_db):
        book_id = host_db.insert("book", course=4, name="Manual", intro="")
        host_db.insert("book_chapters", bookid=book_id, title="Chapter 1", content="")
        # Chapter of a book that no longer exists
        host_db.insert("book_chapters", bookid=999, title="Lost", content="")
        tables = [{
            "table": "book_chapters",
            "parent_table": "book",
            "parent_fk": "bookid",
            "parent_scope_column": "course",
            "fields": {"title": "plain"},
        }]
        refs = list(make_scanner(host_db, tables).scan())
        assert [(r.raw_content, r.scope_id) for r in refs] == [("Chapter 1", 4)]

    def test_missing_table_is_skipped(self, host_db):
        host_db.insert("page", course=1, name="Still scanned", content=None)
        tables = [{"table": "forum", "fields": {"name": "plain"}}, PAGE_TABLE]
        refs = list(make_scanner(host_db, tables).scan())
        assert [r.raw_content for r in refs] == ["Still scanned"]

    def test_strict_scan_raises_on_missing_table(self, host_db):
        tables = [PAGE_TABLE, {"table": "forum", "fields": {"name": "plain"}}]
        with pytest.raises(HostUnavailableError) as exc_info:
            list(make_scanner(host_db, tables).scan(strict=True))
        assert exc_info.value.table == "forum"

    def test_missing_host_database_is_not_created(self, tmp_path):
        missing = tmp_path / "missing.db"
        config = TaggingConfig.from_dict({"tables": [PAGE_TABLE]})
        scanner = ContentScanner(config, HostContentStore(missing))

        assert list(scanner.scan()) == []
        with pytest.raises(HostUnavailableError):
            list(scanner.scan(strict=True))
        assert not missing.exists()

    def test_source_config_override(self, host_db):
        host_db.insert("page", course=1, name="Page", content=None)
        host_db.insert("label", course=1, name="Label", intro=None)
        scanner = make_scanner(host_db, [PAGE_TABLE])
        override = TaggingConfig.from_dict({"tables": [{"table": "label", "scope_column": "course",
                                                        "fields": {"name": "plain"}}]})
        assert [r.raw_content for r in scanner.scan(source_config=override)] == ["Label"]


class TestHostWrite:

    def test_write_field(self, host_db):
        row_id = host_db.insert("page", course=1, name="Old", content=None)
        host = HostContentStore(host_db.path)
        assert host.write_field("page", row_id, "name", "New")
        assert host_db.get("page", row_id, "name") == "New"

    def test_write_to_missing_database(self, tmp_path):
        missing = tmp_path / "missing.db"
        with pytest.raises(sqlite3.OperationalError):
            HostContentStore(missing).write_field("page", 1, "name", "New")
        assert not missing.exists()

    def test_write_to_deleted_row(self, host_db):
        host = HostContentStore(host_db.path)
        assert host.write_field("page", 12345, "name", "New") is False

    def test_write_with_stale_expected_value(self, host_db):
        row_id = host_db.insert("page", course=1, name="Edited meanwhile", content=None)
        host = HostContentStore(host_db.path)
        assert host.write_field("page", row_id, "name", "Tagged", expected="Original") is False
        assert host_db.get("page", row_id, "name") == "Edited meanwhile"

    def test_invalid_identifier_rejected(self, host_db):
        host = HostContentStore(host_db.path)
        with pytest.raises(ValueError):
            host.write_field("page; DROP TABLE page", 1, "name", "x")
