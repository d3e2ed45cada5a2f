"""
Completion client for the Gemini generateContent REST endpoint.
"""

from typing import Any, Dict, Optional
import logging

import requests

from ..config import settings
from ..exceptions import ConfigurationError, ServiceError
from ..utils import measure_time, log_processing_info, handle_processing_error, truncate

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "AI service error"


def parse_completion(payload: Any) -> Optional[str]:
    """
    Extract the first candidate's text from a generateContent response.

    Returns None when the envelope does not have the expected shape, so that
    format drift in the upstream API degrades to the fallback reply.
    """
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    if not isinstance(first, dict):
        return None
    content = first.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return truncate(error["message"])
    return DEFAULT_ERROR_MESSAGE


class CompletionClient:
    """Sends one prompt per call to the hosted text-generation API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.model = model or settings.google_chat_model
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{settings.google_api_base_url.rstrip('/')}/models/{self.model}:generateContent"

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.google_temperature,
                "maxOutputTokens": settings.google_max_tokens,
            },
        }

    @measure_time
    def complete(self, prompt: str) -> Optional[str]:
        """
        Generate a completion for the prompt.

        Returns:
            The first candidate's text, or None if the response has no usable text

        Raises:
            ConfigurationError: If the API key is not configured
            ServiceError: If the upstream call fails or the body cannot be parsed
        """
        if not self.api_key:
            raise ConfigurationError("GOOGLE_API_KEY is not configured")

        try:
            response = self.session.post(
                self.endpoint,
                json=self._build_payload(prompt),
                headers={"x-goog-api-key": self.api_key},
                timeout=settings.completion_timeout_seconds,
            )
        except requests.Timeout as e:
            handle_processing_error("completion_request", e, {"model": self.model})
            raise ServiceError("AI service timed out") from e
        except requests.RequestException as e:
            handle_processing_error("completion_request", e, {"model": self.model})
            raise ServiceError(DEFAULT_ERROR_MESSAGE) from e

        try:
            payload = response.json()
        except ValueError as e:
            handle_processing_error("completion_parse", e, {"status_code": response.status_code})
            raise ServiceError(DEFAULT_ERROR_MESSAGE, upstream_status=response.status_code) from e

        if not response.ok:
            message = _error_message(payload)
            logger.error(f"Completion request failed with status {response.status_code}: {message}")
            raise ServiceError(message, upstream_status=response.status_code)

        text = parse_completion(payload)

        log_processing_info("Completion received", {
            "model": self.model,
            "prompt_length": len(prompt),
            "has_text": bool(text),
        })

        return text
