"""
Inline reference markers.

A marker is the token ``{t:<fingerprint>}`` appended to a piece of content so
the renderer can find its translations later. Markers are recognised by a
small state machine instead of a regular expression so that broken input
(truncated markers, nested braces, markers inside HTML tags) is reported as a
defined problem rather than silently matched or missed.

For HTML the scanner also tracks whether it is inside a tag, a quoted
attribute value or a comment. A marker is only valid in text content.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from autotranslate.tagging.fingerprint import ALPHABET, FINGERPRINT_LENGTH, is_fingerprint

MARKER_OPEN = "{t:"
MARKER_CLOSE = "}"

# Scanner states
TEXT = "text"
TAG = "tag"
ATTRIBUTE_VALUE = "attribute_value"
COMMENT = "comment"


class MarkerError(ValueError):
    """Base class for marker problems."""


class MalformedMarkerError(MarkerError):
    """A marker attempt that does not follow the ``{t:XXXXXXXXXX}`` grammar."""

    def __init__(self, message: str, position: int = -1):
        super().__init__(message)
        self.position = position


class MalformedContentError(MarkerError):
    """Content where no safe insertion point exists (e.g. it ends inside a tag)."""


@dataclass
class MarkerSpan:
    start: int
    end: int
    identifier: str


@dataclass
class MarkerProblem:
    position: int
    reason: str


@dataclass
class ScanResult:
    markers: List[MarkerSpan] = field(default_factory=list)
    problems: List[MarkerProblem] = field(default_factory=list)
    end_state: str = TEXT

    @property
    def identifiers(self) -> List[str]:
        seen = []
        for marker in self.markers:
            if marker.identifier not in seen:
                seen.append(marker.identifier)
        return seen


def _read_marker(text: str, start: int) -> Tuple[Optional[MarkerSpan], Optional[str], int]:
    """
    Read a marker whose opening ``{t:`` starts at `start`.

    Returns (span, problem_reason, resume_index). Exactly one of span and
    problem_reason is set.
    """
    id_start = start + len(MARKER_OPEN)
    pos = id_start
    length = len(text)
    while pos < length and text[pos] in ALPHABET and pos - id_start < FINGERPRINT_LENGTH:
        pos += 1
    id_length = pos - id_start

    if pos >= length:
        return None, "truncated marker", length
    char = text[pos]
    if id_length == FINGERPRINT_LENGTH and char == MARKER_CLOSE:
        return MarkerSpan(start, pos + 1, text[id_start:pos]), None, pos + 1
    if char == "{":
        return None, "nested brace in marker", pos
    if id_length < FINGERPRINT_LENGTH and char == MARKER_CLOSE:
        return None, f"marker identifier has {id_length} characters", pos + 1
    return None, f"unexpected character {char!r} in marker", pos


def scan_markers(text: str, html: bool = False) -> ScanResult:
    """Walk `text` once and collect markers, marker problems and the final markup state."""
    result = ScanResult()
    state = TEXT
    quote = ""
    pos = 0
    length = len(text)

    while pos < length:
        if text.startswith(MARKER_OPEN, pos):
            span, reason, resume = _read_marker(text, pos)
            if span and state == TEXT:
                result.markers.append(span)
            elif span:
                result.problems.append(MarkerProblem(pos, f"marker inside HTML {state.replace('_', ' ')}"))
            else:
                result.problems.append(MarkerProblem(pos, reason))
            pos = resume
            continue

        char = text[pos]
        if not html:
            pos += 1
            continue

        if state == TEXT:
            if text.startswith("<!--", pos):
                state = COMMENT
                pos += 4
                continue
            nxt = text[pos + 1] if pos + 1 < length else ""
            if char == "<" and (nxt.isalpha() or nxt in "/!?"):
                state = TAG
        elif state == TAG:
            if char in "\"'":
                state = ATTRIBUTE_VALUE
                quote = char
            elif char == ">":
                state = TEXT
        elif state == ATTRIBUTE_VALUE:
            if char == quote:
                state = TAG
        elif state == COMMENT:
            if text.startswith("-->", pos):
                state = TEXT
                pos += 3
                continue
        pos += 1

    result.end_state = state
    return result


def _remove_spans(text: str, spans: List[MarkerSpan]) -> str:
    pieces = []
    last = 0
    for span in spans:
        pieces.append(text[last:span.start])
        last = span.end
    pieces.append(text[last:])
    return "".join(pieces)


def has_marker(text: str) -> bool:
    """True if `text` contains at least one well-formed marker."""
    if not text:
        return False
    return bool(scan_markers(text).markers)


def extract_marker(text: str) -> Tuple[Optional[str], str]:
    """
    Split `text` into (identifier, content without the marker).

    Returns (None, text) when there is no marker or the markers are malformed
    or ambiguous.
    """
    if not text:
        return None, text
    result = scan_markers(text)
    if result.problems or len(result.identifiers) != 1:
        return None, text
    return result.identifiers[0], _remove_spans(text, result.markers)


def parse_marker(text: str, html: bool = False) -> Tuple[Optional[str], str]:
    """
    Strict variant of extract_marker.

    Raises:
        MalformedMarkerError: for any marker problem or two different identifiers.
    """
    result = scan_markers(text or "", html=html)
    if result.problems:
        problem = result.problems[0]
        raise MalformedMarkerError(f"{problem.reason} at position {problem.position}", problem.position)
    identifiers = result.identifiers
    if len(identifiers) > 1:
        raise MalformedMarkerError(f"content carries {len(identifiers)} different markers",
                                   result.markers[1].start)
    if not identifiers:
        return None, text
    return identifiers[0], _remove_spans(text, result.markers)


def format_marker(identifier: str) -> str:
    return f"{MARKER_OPEN}{identifier}{MARKER_CLOSE}"


def apply_marker(content: str, identifier: str, html: bool = False) -> str:
    """
    Append the marker for `identifier` to `content`.

    The marker goes at the very end, which is after any closing tags. Content
    that already has a marker is returned unchanged.

    Raises:
        ValueError: if `identifier` is not a fingerprint.
        MalformedMarkerError: if the content holds a broken marker attempt.
        MalformedContentError: if HTML content ends inside a tag, attribute value or comment.
    """
    if not is_fingerprint(identifier):
        raise ValueError(f"Not a valid identifier: {identifier!r}")

    result = scan_markers(content, html=html)
    if result.problems:
        problem = result.problems[0]
        raise MalformedMarkerError(f"{problem.reason} at position {problem.position}", problem.position)
    if result.markers:
        return content
    if html and result.end_state != TEXT:
        raise MalformedContentError(f"content ends inside an unclosed HTML {result.end_state.replace('_', ' ')}")
    return content + format_marker(identifier)


def strip_markers(text: str) -> str:
    """Remove every well-formed marker, leaving anything malformed in place."""
    if not text:
        return text
    result = scan_markers(text)
    return _remove_spans(text, result.markers) if result.markers else text
