"""
Translation Provider Implementations

A provider turns one text into another language:

    translate(text, source_lang, target_lang) -> str

OpenAICompatibleProvider talks to any `/chat/completions` endpoint (OpenAI,
Gemini's OpenAI layer, DeepSeek, local servers). HTTP failures are mapped to
TransientTranslationError or PermanentTranslationError so callers can decide
whether to retry.
"""

from typing import Any, Optional

import httpx

from autotranslate.ai.exceptions import (
    PermanentTranslationError,
    TransientTranslationError,
    TranslationError,
)
from autotranslate.config import ProviderSettings
from autotranslate.logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 120.0
    return httpx.Timeout(connect=10.0, write=60.0, read=timeout_value, pool=10.0)


def _error_text(response: httpx.Response) -> str:
    try:
        error_json = response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_detail = error_json["error"]
            if isinstance(error_detail, dict):
                return error_detail.get("message") or error_detail.get("code") or str(error_detail)
            return str(error_detail)
    except ValueError:
        pass
    return response.text[:500] if response.text else "No details"


def classify_http_error(e: httpx.HTTPStatusError, provider: str) -> TranslationError:
    """Map an HTTP error response to a transient or permanent TranslationError."""
    status_code = e.response.status_code
    error_text = _error_text(e.response)
    message = f"{provider} API error ({status_code}): {error_text}"
    details = {"status_code": status_code, "provider": provider}
    lowered = error_text.lower()

    if "quota" in lowered or "billing" in lowered or status_code == 402:
        return PermanentTranslationError(message, code="quota_exceeded", details=details)
    if status_code in (401, 403):
        return PermanentTranslationError(message, code="auth_failed", details=details)
    if status_code == 429:
        return TransientTranslationError(message, code="rate_limited", details=details)
    if status_code >= 500:
        return TransientTranslationError(message, code="server_error", details=details)
    if status_code == 408:
        return TransientTranslationError(message, code="timeout", details=details)
    return PermanentTranslationError(message, code="bad_request", details=details)


class TranslationProvider:
    """Interface of a translation provider."""

    name = "provider"

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        raise NotImplementedError


class OpenAICompatibleProvider(TranslationProvider):
    """Provider for OpenAI-compatible chat completion APIs."""

    name = "openai-compatible"

    def __init__(self, settings: ProviderSettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _build_body(self, text: str, source_lang: str, target_lang: str) -> dict:
        prompt = (
            f"Translate the following text from language code '{source_lang}' "
            f"to language code '{target_lang}'.\n\n{text}"
        )
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": self.settings.system_message},
                {"role": "user", "content": prompt},
            ],
        }

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        api_key = self.settings.api_key
        if not api_key or api_key == PLACEHOLDER_API_KEY:
            raise PermanentTranslationError(
                "Provider API key not configured",
                code="provider_config_missing",
                details={"missing_field": "api_key"},
            )
        if not self.settings.api_url:
            raise PermanentTranslationError(
                "Provider API URL not configured",
                code="provider_config_missing",
                details={"missing_field": "api_url"},
            )

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        body = self._build_body(text, source_lang, target_lang)

        logger.debug(f"  Calling provider (model: {self.settings.model}, {source_lang} -> {target_lang})...")

        try:
            httpx_timeout = get_httpx_timeout(self.settings.timeout)
            with httpx.Client(timeout=httpx_timeout, transport=self.transport) as client:
                response = client.post(self.settings.api_url, headers=headers, json=body)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            raise classify_http_error(e, self.name) from e
        except httpx.TimeoutException as e:
            raise TransientTranslationError("Provider request timeout", code="timeout") from e
        except httpx.TransportError as e:
            raise TransientTranslationError(
                f"Provider unreachable: {e}", code="provider_unreachable"
            ) from e
        except ValueError as e:
            raise TransientTranslationError(f"Provider returned invalid JSON: {e}", code="bad_response") from e

        choices = result.get('choices') if isinstance(result, dict) else None
        if not choices:
            raise TransientTranslationError("No content in provider response", code="bad_response")
        content = (choices[0].get('message') or {}).get('content') or ''
        if not content.strip():
            raise TransientTranslationError("Empty translation in provider response", code="bad_response")

        logger.debug(f"  Received {len(content)} chars from provider")
        return content.strip()
