"""
Tests for render-time marker replacement.
"""

import pytest

from autotranslate.tagging.markers import format_marker
from autotranslate.translation.filter import TranslationFilter
from autotranslate.translation.store import TranslationRecord


@pytest.fixture
def text_filter(store):
    return TranslationFilter(store)


def test_replaces_with_requested_language(text_filter, store, add_source):
    identifier = add_source("Hello")
    store.upsert(TranslationRecord(hash=identifier, lang="de", text="Hallo"))
    assert text_filter.filter("Hello" + format_marker(identifier), "de") == "Hallo"


def test_falls_back_to_base_text(text_filter, add_source):
    identifier = add_source("Hello")
    assert text_filter.filter("Old hello" + format_marker(identifier), "fr") == "Hello"


def test_site_language_renders_base_text(text_filter, add_source):
    identifier = add_source("Hello")
    assert text_filter.filter("Hello" + format_marker(identifier), "en") == "Hello"


def test_unknown_identifier_keeps_segment(text_filter):
    assert text_filter.filter("Hello{t:AAAAAAAAAA}", "de") == "Hello"


def test_multiple_segments_and_trailing_text(text_filter, store, add_source):
    a = add_source("One")
    b = add_source("Two")
    store.upsert(TranslationRecord(hash=a, lang="es", text="Uno"))
    store.upsert(TranslationRecord(hash=b, lang="es", text="Dos"))
    text = "One" + format_marker(a) + "Two" + format_marker(b) + " tail"
    assert text_filter.filter(text, "es") == "UnoDos tail"


def test_text_without_markers_is_unchanged(text_filter):
    assert text_filter.filter("<p>Plain</p>", "de") == "<p>Plain</p>"


def test_malformed_marker_is_left_in_place(text_filter):
    assert text_filter.filter("Hello {t:abc}", "de") == "Hello {t:abc}"


def test_empty_text(text_filter):
    assert text_filter.filter("", "de") == ""
    assert text_filter.filter(None, "de") is None
