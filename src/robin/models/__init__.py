"""Convenience exports for Robin LLM client implementations."""

from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMConfigurationError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)
from .openrouter import OpenRouterClient

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMConfigurationError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "OpenRouterClient",
]
