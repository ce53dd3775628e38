"""
Tagging module - Fingerprints, markers and the tagging pass

This module provides:
- fingerprint: deterministic content identifiers
- markers: the {t:<id>} marker codec
- mlang: {mlang xx} block parsing
- host / scanner: reading host content tables
- reconciler: tagging fields and keeping the store in line
"""

from autotranslate.tagging.fingerprint import fingerprint, is_fingerprint
from autotranslate.tagging.markers import (
    MarkerError,
    MalformedMarkerError,
    MalformedContentError,
    apply_marker,
    extract_marker,
    has_marker,
    parse_marker,
    strip_markers,
)
from autotranslate.tagging.mlang import parse_mlang
