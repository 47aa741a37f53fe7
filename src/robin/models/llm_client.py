"""Typed client base class that drives the structured-response retry loop."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

from ..normalize import MissingSectionsError, Schema, normalize
from ..prompts import INVALID_RESPONSE_PLACEHOLDER

__all__ = [
    "MAX_ATTEMPTS",
    "AttemptLogger",
    "LLMClient",
    "LLMClientError",
    "LLMConfigurationError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "extract_json_text",
]

LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

T = TypeVar("T")

Message = Dict[str, str]
AttemptLogger = Callable[[Dict[str, Any], Optional[str], Optional[Any], Optional[Exception], int], None]

_FENCE_PREFIX = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_SUFFIX = re.compile(r"\n?```\s*$", re.IGNORECASE)


class LLMClientError(RuntimeError):
    """Base error raised for structured LLM client failures."""


class LLMConfigurationError(LLMClientError):
    """Raised before any network call when the client cannot be used."""


class LLMTransportError(LLMClientError):
    """Raised when the upstream service rejects the call or cannot be reached."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns content that is not usable JSON."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting the attempt budget on content errors."""


_RETRYABLE_ERRORS = (LLMResponseFormatError, MissingSectionsError, ValidationError)


@dataclass(slots=True)
class LLMRequest(Generic[T]):
    """Typed request payload sent to an LLM."""

    prompt: str
    response_model: Type[T]
    schema: Optional[Schema] = None
    system_prompt: Optional[str] = None
    correction_prompt: str = ""
    model: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 1024
    max_attempts: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def initial_messages(self) -> List[Message]:
        """Return the message sequence for the first attempt."""
        messages: List[Message] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})
        return messages

    def correction_turns(self) -> List[Message]:
        """Return the two turns appended to the sequence after a failed attempt."""
        return [
            {"role": "assistant", "content": INVALID_RESPONSE_PLACEHOLDER},
            {"role": "user", "content": self.correction_prompt},
        ]

    def to_payload(self, default_model: str, messages: List[Message]) -> Dict[str, Any]:
        """Render a transport-ready chat-completions body."""
        return {
            "model": self.model or default_model,
            "messages": [dict(message) for message in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class LLMClient:
    """High-level helper that extracts, normalizes and retries model JSON."""

    def __init__(
        self,
        model: str,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = 0.0,
        task_models: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._model = model
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._task_models = dict(task_models or {})

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def model_for(self, task: str, preferred: Optional[str] = None) -> Optional[str]:
        """Return the configured override for ``task`` or ``preferred``."""
        return self._task_models.get(task) or preferred

    def ensure_ready(self) -> None:
        """Raise ``LLMConfigurationError`` when a call cannot be attempted."""

    def invoke(self, request: LLMRequest[T]) -> T:
        """Invoke the underlying model and return a validated response."""
        result, _ = self.invoke_structured(request)
        return result

    def invoke_structured(
        self,
        request: LLMRequest[T],
        *,
        logger: Optional[AttemptLogger] = None,
    ) -> tuple[T, Any]:
        """Run the request/repair loop and return the model plus normalized data.

        Transport errors end the loop immediately. Unparseable JSON and
        missing sections append a correction turn and retry until the attempt
        budget is spent, then raise ``LLMRetryError``.
        """
        self.ensure_ready()
        attempts = request.max_attempts or self._max_attempts
        messages = request.initial_messages()
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            payload = request.to_payload(self._model, messages)
            raw: Optional[str] = None
            data: Optional[Any] = None
            try:
                raw = self._raw_invoke(payload)
                data = self._parse_json(extract_json_text(raw))
                if request.schema is not None:
                    data = normalize(request.schema, data)
                validated = TypeAdapter(request.response_model).validate_python(data)
            except LLMTransportError as error:
                if logger:
                    logger(payload, raw, data, error, attempt)
                raise
            except _RETRYABLE_ERRORS as error:
                last_error = error
                if logger:
                    logger(payload, raw, data, error, attempt)
                LOGGER.warning("Attempt %d/%d returned unusable content: %s", attempt, attempts, error)
                if attempt >= attempts:
                    break
                messages = [*messages, *request.correction_turns()]
                if self._retry_delay:
                    time.sleep(self._retry_delay)
                continue

            if logger:
                logger(payload, raw, data, None, attempt)
            return validated, data

        raise LLMRetryError(f"Failed after {attempts} attempts. Last error: {last_error}") from last_error

    async def ainvoke_structured(
        self,
        request: LLMRequest[T],
        *,
        logger: Optional[AttemptLogger] = None,
    ) -> tuple[T, Any]:
        """Run ``invoke_structured`` in a worker thread for async callers."""
        return await asyncio.to_thread(self.invoke_structured, request, logger=logger)

    def complete(
        self,
        messages: List[Message],
        *,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> str:
        """Send one free-text turn and return the reply without any parsing."""
        self.ensure_ready()
        payload = {
            "model": model or self._model,
            "messages": [dict(message) for message in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return self._raw_invoke(payload)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")

    @staticmethod
    def _parse_json(text: str) -> Any:
        """Parse JSON payloads and normalize errors."""
        if not text.strip():
            raise LLMResponseFormatError("Model returned an empty response.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            repaired = _strip_trailing_commas(text)
            if repaired != text:
                try:
                    return json.loads(repaired)
                except (ValueError, RecursionError):
                    pass
            raise LLMResponseFormatError(f"Model returned invalid JSON: {error}") from error
        except RecursionError as error:
            raise LLMResponseFormatError("Model returned JSON nested too deeply to parse.") from error
        except ValueError as error:
            # int digit limit and similar decoder refusals
            raise LLMResponseFormatError(f"Model returned unparseable JSON: {error}") from error


def extract_json_text(raw: str) -> str:
    """Strip Markdown fences and slice from the first ``{`` to the last ``}``.

    When the braces are missing or out of order the fence-stripped text is
    returned unchanged so that parsing fails on it.
    """
    cleaned = _FENCE_SUFFIX.sub("", _FENCE_PREFIX.sub("", raw.strip())).strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last != -1 and first < last:
        return cleaned[first : last + 1]
    return cleaned


def _strip_trailing_commas(payload: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    return re.sub(r",(\s*[}\]])", r"\1", payload)
