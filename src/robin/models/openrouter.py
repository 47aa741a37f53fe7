"""Production client that speaks the OpenRouter chat-completions API."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from .llm_client import (
    MAX_ATTEMPTS,
    LLMClient,
    LLMConfigurationError,
    LLMResponseFormatError,
    LLMTransportError,
)

__all__ = ["DEFAULT_BASE_URL", "DEFAULT_MODEL", "OpenRouterClient"]

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "anthropic/claude-sonnet-4-5"

Transport = Callable[[Dict[str, Any]], str]


class OpenRouterClient(LLMClient):
    """Thin adapter around the OpenRouter chat-completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = 0.0,
        task_models: Optional[Mapping[str, str]] = None,
        referer: str = "https://robin.app",
        title: str = "Robin Business Builder",
    ) -> None:
        super().__init__(
            model=model,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            task_models=task_models,
        )
        self._api_key = api_key or os.getenv("OPENROUTER_API_KEY") or ""
        self._base_url = base_url
        timeout_override = os.getenv("ROBIN_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                pass
        self._timeout = timeout
        self._referer = referer
        self._title = title
        self._transport = transport or self._http_transport

    def ensure_ready(self) -> None:
        """Refuse to send anything without a bearer credential."""
        if not self._api_key:
            raise LLMConfigurationError("OpenRouter API key is required")

    def build_headers(self) -> Dict[str, str]:
        """Return the headers attached to every outbound request."""
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._referer,
            "X-Title": self._title,
        }

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport and return the reply text."""
        try:
            raw_response = self._transport(payload)
        except LLMTransportError:
            raise
        except Exception as error:
            raise LLMTransportError(f"OpenRouter API error: {error}") from error

        content = self._extract_content(raw_response)
        if content is None:
            raise LLMResponseFormatError("No content in API response")
        return content

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the chat-completions endpoint."""
        import http.client
        import urllib.error
        import urllib.request

        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("OpenRouter request payload:\n%s", json.dumps(payload, indent=2, sort_keys=True))

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers=self.build_headers(),
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("OpenRouter API error: request timed out") from error
        except urllib.error.HTTPError as error:
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"OpenRouter API error ({error.code}): {message}") from error
        except urllib.error.URLError as error:
            raise LLMTransportError(f"OpenRouter API error: {error.reason}") from error
        except http.client.HTTPException as error:
            raise LLMTransportError(f"OpenRouter API error: connection failed ({error!r})") from error

        body = raw.decode("utf-8", errors="ignore")
        if status < 200 or status >= 300:
            raise LLMTransportError(f"OpenRouter API error ({status}): {body}")
        return body

    @staticmethod
    def _extract_content(raw_response: str) -> Optional[str]:
        """Return ``choices[0].message.content`` from a response body."""
        if not raw_response:
            return None
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message")
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        if isinstance(content, str) and content:
            return content
        return None
