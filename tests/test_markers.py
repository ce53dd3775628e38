"""
Tests for the {t:<id>} marker codec.
"""

import pytest

from autotranslate.tagging.markers import (
    MalformedContentError,
    MalformedMarkerError,
    apply_marker,
    extract_marker,
    format_marker,
    has_marker,
    parse_marker,
    scan_markers,
    strip_markers,
)

ID = "AbCdE12345"
OTHER_ID = "ZyXwV98765"


class TestApplyMarker:

    def test_appends_to_plain_text(self):
        assert apply_marker("Welcome to the course", ID) == "Welcome to the course{t:AbCdE12345}"

    def test_appends_after_closing_tags(self):
        assert apply_marker("<p>Hello <b>world</b></p>", ID, html=True) == "<p>Hello <b>world</b></p>{t:AbCdE12345}"

    def test_is_idempotent(self):
        once = apply_marker("Hello", ID)
        assert apply_marker(once, ID) == once
        assert apply_marker(once, OTHER_ID) == once

    def test_rejects_invalid_identifier(self):
        with pytest.raises(ValueError):
            apply_marker("Hello", "short")

    def test_html_ending_inside_tag(self):
        with pytest.raises(MalformedContentError):
            apply_marker("<p>Hello <b", ID, html=True)

    def test_html_ending_inside_attribute(self):
        with pytest.raises(MalformedContentError):
            apply_marker('<a href="http://example.com', ID, html=True)

    def test_html_ending_inside_comment(self):
        with pytest.raises(MalformedContentError):
            apply_marker("<p>Hi</p><!-- note", ID, html=True)

    def test_less_than_sign_in_text_is_not_a_tag(self):
        assert apply_marker("<p>1 < 2</p>", ID, html=True).endswith(format_marker(ID))

    def test_plain_text_ignores_markup(self):
        assert apply_marker("a <b", ID) == "a <b{t:AbCdE12345}"

    def test_broken_marker_attempt(self):
        with pytest.raises(MalformedMarkerError):
            apply_marker("Hello {t:abc", ID)


class TestRoundTrip:

    @pytest.mark.parametrize("content,html", [
        ("Welcome to the course", False),
        ("<p>Welcome <em>to</em> the course</p>", True),
        ("<p>Line one</p>\n<p>Line two</p>\n", True),
    ])
    def test_extract_returns_what_was_applied(self, content, html):
        assert extract_marker(apply_marker(content, ID, html=html)) == (ID, content)


class TestExtractMarker:

    def test_no_marker(self):
        assert extract_marker("Hello") == (None, "Hello")

    def test_empty(self):
        assert extract_marker("") == (None, "")

    def test_malformed_marker_is_graceful(self):
        assert extract_marker("Hello {t:abc}") == (None, "Hello {t:abc}")

    def test_two_different_markers_are_ambiguous(self):
        text = f"a{format_marker(ID)}b{format_marker(OTHER_ID)}"
        assert extract_marker(text) == (None, text)


class TestParseMarker:

    def test_valid(self):
        assert parse_marker("Hello{t:AbCdE12345}") == (ID, "Hello")

    def test_no_marker(self):
        assert parse_marker("Hello") == (None, "Hello")

    def test_repeated_identical_marker(self):
        assert parse_marker(f"a{format_marker(ID)}b{format_marker(ID)}") == (ID, "ab")

    @pytest.mark.parametrize("text", [
        "Hello {t:abc",
        "Hello {t:abc}",
        "Hello {t:AbCdE123456789}",
        "Hello {t:abc{t:AbCdE12345}}",
        "Hello {t:AbCdE!2345}",
    ])
    def test_malformed(self, text):
        with pytest.raises(MalformedMarkerError):
            parse_marker(text)

    def test_two_different_markers(self):
        with pytest.raises(MalformedMarkerError):
            parse_marker(f"a{format_marker(ID)}b{format_marker(OTHER_ID)}")

    def test_marker_inside_attribute(self):
        text = f'<a title="{format_marker(ID)}">x</a>'
        with pytest.raises(MalformedMarkerError):
            parse_marker(text, html=True)
        # Without HTML awareness the same text is an ordinary marker
        assert parse_marker(text)[0] == ID

    def test_marker_inside_tag(self):
        with pytest.raises(MalformedMarkerError):
            parse_marker(f"<p {format_marker(ID)}>x</p>", html=True)

    def test_marker_inside_comment_is_a_problem(self):
        result = scan_markers(f"<!-- {format_marker(ID)} -->", html=True)
        assert result.problems and not result.markers


class TestHasAndStrip:

    def test_has_marker(self):
        assert has_marker("x{t:AbCdE12345}")
        assert not has_marker("x{t:AbCdE}")
        assert not has_marker("")

    def test_strip_markers(self):
        assert strip_markers(f"a{format_marker(ID)} b{format_marker(OTHER_ID)}") == "a b"

    def test_strip_leaves_malformed(self):
        assert strip_markers("a {t:abc}") == "a {t:abc}"
