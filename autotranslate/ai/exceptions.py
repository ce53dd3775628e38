"""
Provider Exceptions

Kept apart from providers.py so the fetch tracker can catch them without
importing httpx.
"""


class TranslationError(Exception):
    """Translation provider error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class TransientTranslationError(TranslationError):
    """Timeouts, rate limits, server errors. Worth retrying."""


class PermanentTranslationError(TranslationError):
    """Authentication, quota or request errors. Retrying will not help."""
