"""Shared helpers for invoking tasks and emitting structured logs."""

from __future__ import annotations

import hashlib
import json
import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, TypeVar

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient, LLMClientError, LLMRequest
from ..structured import Outcome

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RequestValidationError(ValueError):
    """Raised when a task request is missing a required input."""


@dataclass(slots=True)
class ChatMessage:
    """One turn of a UI conversation; ``model`` marks assistant turns."""

    role: Literal["user", "model"]
    text: str

    def to_wire(self) -> dict[str, str]:
        """Return the chat-completions form of this turn."""
        role = "assistant" if self.role == "model" else "user"
        return {"role": role, "content": self.text}


def require_text(value: Any, message: str) -> str:
    """Return ``value`` stripped or raise ``RequestValidationError``."""
    if not isinstance(value, str) or not value.strip():
        raise RequestValidationError(message)
    return value.strip()


def require_history(history: Sequence[ChatMessage]) -> None:
    if not history:
        raise RequestValidationError("Conversation history cannot be empty")


def render_transcript(history: Sequence[ChatMessage]) -> str:
    """Render chat turns as ``role: text`` lines."""
    return "\n".join(f"{turn.role}: {turn.text}" for turn in history)


def invoke_task(
    task: TaskPrompt,
    request: Any,
    response_model: type[T],
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[T]:
    """Common helper used by the task modules to call the LLM client.

    Every failure category (empty inputs, missing credential, transport
    errors, exhausted retries) is folded into a failed ``Outcome``.
    """
    try:
        request.validate()
    except RequestValidationError as error:
        LOGGER.info("Rejected %s request: %s", task.name, error)
        return Outcome.failure(error)

    package = builder.build(task, request)
    llm_request = LLMRequest(
        prompt=package.user_prompt,
        system_prompt=package.system_prompt,
        response_model=response_model,
        schema=task.schema,
        correction_prompt=builder.correction(task),
        model=client.model_for(task.name, task.model),
        temperature=task.temperature,
        max_tokens=task.max_tokens,
        metadata=package.metadata,
    )
    attempts: list[dict[str, Any]] = []

    def _attempt_logger(
        payload: dict[str, Any],
        raw: str | None,
        parsed: Any,
        error: Exception | None,
        attempt: int,
    ) -> None:
        attempts.append(
            {
                "attempt": attempt,
                "payload": _json_safe(payload),
                "raw": raw,
                "parsed": _json_safe(parsed),
                "error": str(error) if error else None,
            }
        )

    LOGGER.info("Running task %s", task.name)
    try:
        result, _ = client.invoke_structured(llm_request, logger=_attempt_logger)
    except LLMClientError as error:
        LOGGER.warning("Task %s failed: %s", task.name, error)
        _write_task_log(builder, task.name, request, llm_request, attempts, error=error)
        return Outcome.failure(error)

    LOGGER.info("Task %s succeeded after %d attempt(s)", task.name, len(attempts))
    _write_task_log(builder, task.name, request, llm_request, attempts, result=result)
    return Outcome.ok(result)


def _write_task_log(
    builder: PromptBuilder,
    task: str,
    request: Any,
    llm_request: LLMRequest[Any] | None,
    attempts: list[dict[str, Any]],
    *,
    result: Any | None = None,
    error: Exception | None = None,
) -> Path | None:
    """Persist a structured task execution log for later debugging."""
    if builder.logs_root is None:
        return None
    logs_root = builder.logs_root / "tasks"
    try:
        logs_root.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    entry: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "task": task,
        "request": _json_safe(request),
        "attempts": attempts,
    }
    if llm_request is not None:
        entry["context"] = {
            "system_prompt": llm_request.system_prompt,
            "user_prompt": llm_request.prompt,
            "metadata": _json_safe(llm_request.metadata),
        }
    if result is not None:
        entry["result"] = _json_safe(result)
    if error is not None:
        entry["error"] = str(error)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    parts = ["task", _slug(task, fallback="task"), timestamp, uuid.uuid4().hex[:8]]
    log_path = logs_root / ("__".join(parts) + ".json")
    try:
        with log_path.open("w", encoding="utf-8") as handle:
            json.dump(entry, handle, indent=2, sort_keys=True, ensure_ascii=False)
    except OSError:
        return None
    return log_path


def _json_safe(value: Any) -> Any:
    """Coerce complex objects into JSON-serialisable representations."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if is_dataclass(value) and not isinstance(value, type):
        return _json_safe(asdict(value))
    if hasattr(value, "model_dump"):
        try:
            return _json_safe(value.model_dump(by_alias=True, mode="json"))
        except TypeError:
            pass
    if isinstance(value, dict):
        return {str(key): _json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def _slug(value: str, *, fallback: str = "item", max_length: int = 80) -> str:
    """Normalise identifiers for use in log filenames."""
    cleaned = re.sub(r"[^A-Za-z0-9]+", "-", value).strip("-")
    slug = cleaned or fallback
    if len(slug) <= max_length:
        return slug
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix_length = max(max_length - len(digest) - 1, 1)
    prefix = slug[:prefix_length].rstrip("-") or slug[:prefix_length]
    return f"{prefix}-{digest}"
