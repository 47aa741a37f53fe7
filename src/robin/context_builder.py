"""Build system/user prompt packages for the structured tasks."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, is_dataclass
from pathlib import Path
from typing import Any, Callable

from . import prompts
from .normalize import Schema


@dataclass(slots=True)
class ContextPackage:
    """Container for the system and user prompts supplied to the model."""

    system_prompt: str
    user_prompt: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TaskPrompt:
    """Fixed prompt material for one task type.

    The schema drives both the literal JSON shape shown to the model and the
    normalizer, so field names cannot drift apart between the two.
    """

    name: str
    persona: str
    schema: Schema
    rules: tuple[str, ...]
    mistakes: tuple[str, ...]
    render_user: Callable[[Any], str]
    model: str | None = None
    temperature: float = 0.3
    max_tokens: int = 1024


class PromptBuilder:
    """Assemble prompt packages and corrective follow-ups for task requests."""

    def __init__(
        self,
        *,
        guidance: Sequence[str] | None = None,
        logs_root: Path | str | None = None,
    ) -> None:
        cleaned_guidance: list[str] = []
        for line in guidance or ():
            if isinstance(line, str) and line.strip():
                cleaned_guidance.append(line.strip())
        self._guidance_lines = tuple(cleaned_guidance)
        self._logs_root = Path(logs_root) if logs_root else None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], base_dir: Path | None = None) -> PromptBuilder:
        """Instantiate a builder using project configuration values."""
        context_config = config.get("context") if isinstance(config.get("context"), Mapping) else {}
        guidance_values: list[str] = []
        guidance_raw = context_config.get("guidance")
        if isinstance(guidance_raw, str):
            guidance_values.append(guidance_raw)
        elif isinstance(guidance_raw, Sequence):
            guidance_values.extend(entry for entry in guidance_raw if isinstance(entry, str))

        paths_config = config.get("paths") if isinstance(config.get("paths"), Mapping) else {}
        logs_value = paths_config.get("logs")
        logs_root: Path | None = None
        if isinstance(logs_value, str) and logs_value.strip():
            logs_root = Path(logs_value.strip())
            if not logs_root.is_absolute() and base_dir is not None:
                logs_root = (base_dir / logs_root).resolve()

        return cls(guidance=guidance_values, logs_root=logs_root)

    @property
    def logs_root(self) -> Path | None:
        """Return the directory receiving task logs, if configured."""
        return self._logs_root

    @property
    def guidance(self) -> tuple[str, ...]:
        return self._guidance_lines

    def build(self, task: TaskPrompt, request: Any) -> ContextPackage:
        """Assemble the prompt package for ``request``."""
        user_prompt = task.render_user(request).strip()
        metadata: dict[str, Any] = {
            "task": task.name,
            "request": _coerce_data(request),
            "sections": list(task.schema.sections),
        }
        if self._guidance_lines:
            metadata["guidance"] = list(self._guidance_lines)
        return ContextPackage(
            system_prompt=self.system_prompt(task),
            user_prompt=user_prompt,
            metadata=metadata,
        )

    def system_prompt(self, task: TaskPrompt) -> str:
        """Compose persona, JSON-only instruction, schema and rules."""
        parts = [
            task.persona.strip(),
            prompts.JSON_RESPONSE_INSTRUCTION,
            prompts.render_schema_block(task.schema.shape_text()),
            prompts.render_rules(task.rules),
            prompts.render_guidance(self._guidance_lines),
        ]
        return "\n\n".join(part for part in parts if part)

    def correction(self, task: TaskPrompt) -> str:
        """Return the corrective user turn for ``task``."""
        return prompts.render_correction(task.mistakes)


def _coerce_data(request: Any) -> Any:
    if is_dataclass(request) and not isinstance(request, type):
        return asdict(request)
    if isinstance(request, Mapping):
        return dict(request)
    return request
