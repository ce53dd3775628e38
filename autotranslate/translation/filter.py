"""
Render-time filter.

Each marker closes a segment: the text between the previous marker (or the
start) and the marker itself is the content the marker identifies. A segment is
replaced by its translation in the requested language, falling back to the
stored base text and then to the segment as written. Text after the last marker
and malformed marker attempts are left untouched.
"""

from typing import Dict, Optional

from autotranslate.logger import get_logger
from autotranslate.tagging.markers import scan_markers
from autotranslate.translation.store import TranslationStore

logger = get_logger(__name__)


class TranslationFilter:
    def __init__(self, store: TranslationStore):
        self.store = store

    def _lookup(self, identifier: str, lang: str, cache: Dict[str, Optional[str]]) -> Optional[str]:
        if identifier not in cache:
            record = self.store.find(identifier, lang)
            if record is None or not record.text:
                record = self.store.find(identifier, self.store.base_language)
            cache[identifier] = record.text if record and record.text else None
        return cache[identifier]

    def filter(self, text: str, lang: str) -> str:
        if not text or not isinstance(text, str):
            return text

        result = scan_markers(text)
        if not result.markers:
            return text

        cache: Dict[str, Optional[str]] = {}
        pieces = []
        last = 0
        for span in result.markers:
            segment = text[last:span.start]
            replacement = self._lookup(span.identifier, lang, cache)
            pieces.append(replacement if replacement is not None else segment)
            last = span.end
        pieces.append(text[last:])

        logger.debug(f"Rendered {len(result.markers)} marked segments for '{lang}'")
        return "".join(pieces)
