"""
AI module - Translation provider access

This module provides:
- exceptions: TranslationError and its transient/permanent split
- providers: OpenAI-compatible HTTP provider
- service: Provider configuration checks and construction
"""

from autotranslate.ai.exceptions import (
    TranslationError,
    TransientTranslationError,
    PermanentTranslationError,
)
from autotranslate.ai.providers import OpenAICompatibleProvider, TranslationProvider
from autotranslate.ai.service import build_provider, validate_provider_config
