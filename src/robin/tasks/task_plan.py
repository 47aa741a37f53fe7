"""Task plan task: a themed list of three to five next actions."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import pydantic

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient
from ..normalize import Field, FieldKind, Schema
from ..structured import Outcome, ResponseModel
from .base import ChatMessage, RequestValidationError, invoke_task

DEFAULT_THEME = "General Focus"
CONTEXT_TURNS = 15
PRIORITIES = ("High", "Medium", "Low")
TASK_TYPES = ("Validation", "Acquisition", "Conversion", "Admin/Legal", "Product")


@dataclass(slots=True)
class TaskPlanRequest:
    """Input payload for the task planner."""

    profile: dict[str, Any]
    history: list[ChatMessage] = field(default_factory=list)
    current_tasks: list[str] = field(default_factory=list)

    def validate(self) -> None:
        if not self.profile:
            raise RequestValidationError("Business profile cannot be empty")


class PlannedTask(ResponseModel):
    """Actionable task; identity and status are assigned locally, never by the model."""

    id: str = pydantic.Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str
    priority: Literal["High", "Medium", "Low"]
    type: Literal["Validation", "Acquisition", "Conversion", "Admin/Legal", "Product"]
    status: Literal["todo", "in-progress", "done"] = "todo"
    theme: Optional[str] = None


class TaskPlanResponse(ResponseModel):
    """Structured result returned by the task planner."""

    theme: str
    analysis: str
    tasks: list[PlannedTask]

    @pydantic.model_validator(mode="before")
    @classmethod
    def _stamp_tasks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        theme = data.get("theme")
        tasks = data.get("tasks")
        if not isinstance(tasks, list):
            return data
        stamped = []
        for item in tasks:
            if isinstance(item, dict):
                item = {key: value for key, value in item.items() if key not in {"id", "status"}}
                item.setdefault("theme", theme)
            stamped.append(item)
        return {**data, "tasks": stamped}

    def focus_summary(self) -> str:
        """Return the analysis headed by the plan theme."""
        return f"**Focus: {self.theme}**\n\n{self.analysis}"


SCHEMA = Schema(
    name="task_plan",
    fields=(
        Field("theme", aliases=("focus",), default=DEFAULT_THEME,
              hint="e.g. 'Validation Sprint', 'Legal Foundation', 'Growth: Marketing'"),
        Field("analysis", aliases=("summary",), hint="2-3 sentences on why this focus now"),
        Field(
            "tasks",
            FieldKind.OBJECTS,
            aliases=("items", "actionItems"),
            section=True,
            min_items=1,
            max_items=5,
            fields=(
                Field("title", aliases=("name",), default="Untitled task", hint="short imperative title"),
                Field("description", aliases=("details",), hint="clear, encouraging steps"),
                Field("priority", FieldKind.CHOICE, choices=PRIORITIES, default="Medium"),
                Field("type", FieldKind.CHOICE, aliases=("category",), choices=TASK_TYPES, default="Validation"),
            ),
        ),
    ),
)


def _render_user(request: TaskPlanRequest) -> str:
    context = "\n".join(turn.text for turn in request.history[-CONTEXT_TURNS:])
    return (
        "Generate a strictly limited list of 3-5 actionable tasks based on the Business Profile.\n\n"
        f"Business Profile: {json.dumps(request.profile, ensure_ascii=False, sort_keys=True)}\n"
        f"Current Active Tasks: {json.dumps(request.current_tasks, ensure_ascii=False)}\n\n"
        f"Context:\n{context}"
    )


TASK = TaskPrompt(
    name="task_plan",
    persona="You are a Senior Swedish Operations Consultant planning a founder's next steps.",
    schema=SCHEMA,
    rules=(
        'Select a single "theme" for the whole list',
        'Return EXACTLY 3-5 objects in "tasks"',
        "If the user is shifting focus (e.g. from Validation to Marketing), generate new tasks that "
        "REPLACE the old ones",
        "Do not suggest tasks already in the Current Active Tasks list unless they are critical",
        '"priority" and "type" must use the exact values shown in the schema',
    ),
    mistakes=(
        '"tasks" was missing or renamed; it must be an array of task objects',
        'Task objects used "priority" or "type" values outside the allowed set',
        '"theme" was omitted',
    ),
    render_user=_render_user,
    temperature=0.2,
    max_tokens=1536,
)


def run(
    request: TaskPlanRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[TaskPlanResponse]:
    """Execute the task planner via the shared LLM client."""
    return invoke_task(TASK, request, TaskPlanResponse, client=client, builder=builder)
