"""
Multilang block parsing.

Content written before tagging was enabled may already carry inline
translations, either as ``{mlang xx}...{mlang}`` blocks or as
``<span lang="xx" class="multilang">...</span>`` elements. When such a field is
tagged for the first time the blocks are split into the base text (blocks in
``other`` or the site language, plus everything outside blocks) and one text
per remaining language, built the same way, so markup around the blocks is
kept.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List

MLANG_PATTERN = re.compile(r"\{mlang\s+([A-Za-z_-]+)\}(.*?)\{mlang\}", re.IGNORECASE | re.DOTALL)

# Attributes in either order, any quoting
SPAN_PATTERN = re.compile(
    r"<span\s+(?=[^>]*\bclass\s*=\s*[\"']multilang[\"'])[^>]*?\blang\s*=\s*[\"']([A-Za-z_-]+)[\"'][^>]*>"
    r"(.*?)</span>",
    re.IGNORECASE | re.DOTALL,
)

# Spans first, so a {mlang} block inside a span is seen by the second pass
BLOCK_PATTERNS = (SPAN_PATTERN, MLANG_PATTERN)


@dataclass
class MlangResult:
    source_text: str
    translations: Dict[str, str] = field(default_factory=dict)
    found: bool = False


def _render_for(text: str, keep: List[str]) -> str:
    def replace(match):
        return match.group(2).strip() if match.group(1).lower() in keep else ""
    for pattern in BLOCK_PATTERNS:
        text = pattern.sub(replace, text)
    return text.strip()


def find_languages(text: str) -> List[str]:
    """Languages of all multilang blocks in `text`, in order of appearance."""
    found = []
    for pattern in BLOCK_PATTERNS:
        for match in pattern.finditer(text or ""):
            found.append((match.start(), match.group(1).lower()))

    languages = []
    for _, lang in sorted(found):
        if lang not in languages:
            languages.append(lang)
    return languages


def parse_mlang(text: str, site_language: str = "en", base_language: str = "other") -> MlangResult:
    """Split multilang blocks into base text and per-language translations."""
    languages = find_languages(text)
    if not languages:
        return MlangResult(source_text=text, found=False)

    base_codes = [base_language, site_language.lower()]
    if not any(lang in base_codes for lang in languages):
        # No block in the base language: the first block stands in for it
        base_codes.append(languages[0])

    source_text = _render_for(text, base_codes)
    translations = {}
    for lang in languages:
        if lang in base_codes:
            continue
        translations[lang] = _render_for(text, [lang])

    return MlangResult(source_text=source_text, translations=translations, found=True)
