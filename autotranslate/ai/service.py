"""
Provider Service

Configuration checks and construction of the configured translation provider.
"""

from autotranslate.ai.exceptions import PermanentTranslationError
from autotranslate.ai.providers import PLACEHOLDER_API_KEY, OpenAICompatibleProvider
from autotranslate.config import ProviderSettings
from autotranslate.logger import get_logger

logger = get_logger(__name__)


def validate_provider_config(settings: ProviderSettings) -> None:
    """
    Validate that the provider configuration is properly set up.

    Raises:
        PermanentTranslationError: If configuration is missing, with code and details.
    """
    if not settings.api_key or settings.api_key == PLACEHOLDER_API_KEY:
        raise PermanentTranslationError(
            "Provider API key not configured. Please set it in the configuration.",
            code="provider_config_missing",
            details={"missing_field": "api_key"},
        )
    if not settings.api_url:
        raise PermanentTranslationError(
            "Provider API URL not configured",
            code="provider_config_missing",
            details={"missing_field": "api_url"},
        )
    if not settings.model:
        raise PermanentTranslationError(
            "Provider model not configured",
            code="provider_config_missing",
            details={"missing_field": "model"},
        )


def build_provider(settings: ProviderSettings) -> OpenAICompatibleProvider:
    """Create the configured provider. Configuration problems surface on first use."""
    try:
        validate_provider_config(settings)
    except PermanentTranslationError as e:
        logger.warning(f"Provider not ready: {e}")
    else:
        logger.info(f"Initialized translation provider with model: {settings.model}")
    return OpenAICompatibleProvider(settings)
