"""Routing logic that maps task requests to their concrete implementations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

from .context_builder import PromptBuilder
from .models.llm_client import LLMClient
from .structured import Outcome
from .tasks import TaskName
from .tasks.business_names import BusinessNamesRequest, BusinessNamesResponse, run as run_business_names
from .tasks.business_type import BusinessTypeRequest, BusinessTypeResponse, run as run_business_type
from .tasks.chat import ChatReply, ChatRequest, run as run_chat
from .tasks.market_research import MarketResearchRequest, MarketResearchResponse, run as run_market_research
from .tasks.onboarding import OnboardingReply, OnboardingRequest, run as run_onboarding
from .tasks.profile import BusinessProfile, ProfileRequest, run as run_profile
from .tasks.task_plan import TaskPlanRequest, TaskPlanResponse, run as run_task_plan


TaskRunner = Callable[..., Outcome[Any]]


@dataclass(slots=True)
class TaskEntry:
    """Metadata describing how to execute a single task."""

    request_model: type[Any]
    response_model: type[Any]
    runner: TaskRunner


class TaskRouter:
    """Dispatch table mapping task names to their concrete handlers."""

    def __init__(self, *, client: LLMClient, builder: PromptBuilder) -> None:
        self._client = client
        self._builder = builder
        self._registry: Dict[TaskName, TaskEntry] = {
            TaskName.MARKET_RESEARCH: TaskEntry(MarketResearchRequest, MarketResearchResponse, run_market_research),
            TaskName.BUSINESS_NAMES: TaskEntry(BusinessNamesRequest, BusinessNamesResponse, run_business_names),
            TaskName.BUSINESS_TYPE: TaskEntry(BusinessTypeRequest, BusinessTypeResponse, run_business_type),
            TaskName.PROFILE: TaskEntry(ProfileRequest, BusinessProfile, run_profile),
            TaskName.TASK_PLAN: TaskEntry(TaskPlanRequest, TaskPlanResponse, run_task_plan),
            TaskName.ONBOARDING: TaskEntry(OnboardingRequest, OnboardingReply, run_onboarding),
            TaskName.CHAT: TaskEntry(ChatRequest, ChatReply, run_chat),
        }

    def dispatch(self, task: TaskName | str, payload: Any) -> Outcome[Any]:
        """Coerce the payload into the expected request type and execute the task."""
        task_name = self._normalize_task(task)
        entry = self._registry[task_name]
        request = self._coerce_payload(payload, entry.request_model)
        return entry.runner(request, client=self._client, builder=self._builder)

    async def adispatch(self, task: TaskName | str, payload: Any) -> Outcome[Any]:
        """Run ``dispatch`` in a worker thread for async callers."""
        return await asyncio.to_thread(self.dispatch, task, payload)

    def available_tasks(self) -> Iterable[TaskName]:
        """Return the tasks currently registered with the router."""
        return self._registry.keys()

    def response_model(self, task: TaskName | str) -> type[Any]:
        return self._registry[self._normalize_task(task)].response_model

    @staticmethod
    def _normalize_task(task: TaskName | str) -> TaskName:
        """Resolve ``task`` into a concrete ``TaskName`` enum member."""
        if isinstance(task, TaskName):
            return task
        try:
            return TaskName(task)
        except ValueError as error:
            valid = ", ".join(item.value for item in TaskName)
            raise KeyError(f"Unknown task '{task}'. Expected one of: {valid}") from error

    @staticmethod
    def _coerce_payload(payload: Any, request_type: type[Any]) -> Any:
        """Validate or convert ``payload`` into the ``request_type`` instance."""
        if isinstance(payload, request_type):
            return payload

        adapter = TypeAdapter(request_type)
        try:
            return adapter.validate_python(payload)
        except ValidationError as error:
            raise ValueError(
                f"Payload for {request_type.__name__} did not validate: {error}"
            ) from error
