"""Strategist chat turn: free-text advice grounded in the business profile."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..context_builder import PromptBuilder
from ..models.llm_client import LLMClient, LLMClientError
from ..structured import Outcome, ResponseModel
from .base import ChatMessage, RequestValidationError, _write_task_log, render_transcript, require_text

LOGGER = logging.getLogger(__name__)

TASK_NAME = "chat"
TEMPERATURE = 0.5

SYSTEM_PROMPT = """You are an experienced, supportive **Business Strategist**.
Your goal is to help the user clarify their vision and succeed."""

_CONTEXT_FIELDS = (
    ("Industry", "industry"),
    ("Target Audience", "targetAudience"),
    ("Product", "productType"),
    ("Budget", "budget"),
)


@dataclass(slots=True)
class ChatRequest:
    """Latest user message, the conversation so far and the business profile."""

    message: str
    profile: dict[str, Any]
    history: list[ChatMessage] = field(default_factory=list)

    def validate(self) -> None:
        require_text(self.message, "Message cannot be empty")
        if not self.profile:
            raise RequestValidationError("Business profile cannot be empty")


class ChatReply(ResponseModel):
    reply: str


def _profile_value(profile: dict[str, Any], key: str) -> Any:
    snake = "".join(f"_{char.lower()}" if char.isupper() else char for char in key)
    value = profile.get(key, profile.get(snake))
    return "Not specified" if value in (None, "") else value


def render_prompt(request: ChatRequest) -> str:
    """Render the profile context, transcript and coaching rules for one turn."""
    context = "\n".join(f"{label}: {_profile_value(request.profile, key)}" for label, key in _CONTEXT_FIELDS)
    return (
        f"Current Business Context:\n{context}\n\n"
        f"Conversation History:\n{render_transcript(request.history)}\n\n"
        f"User's latest input: {request.message.strip()}\n\n"
        "Respond as the Supportive Business Strategist.\n"
        "- Answer their questions clearly.\n"
        "- If they propose an idea, validate it first, then suggest improvements.\n"
        "- If they talk about spending, kindly ask if they've validated the need first (to save them money).\n\n"
        "If they seem ready for the next stage, offer choices: Marketing (Get more), "
        "Production (Handle more), or Freedom (Work less/Delegate)."
    )


def run(
    request: ChatRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[ChatReply]:
    try:
        request.validate()
    except RequestValidationError as error:
        return Outcome.failure(error)

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": render_prompt(request)},
    ]
    try:
        reply = client.complete(messages, model=client.model_for(TASK_NAME), temperature=TEMPERATURE)
    except LLMClientError as error:
        LOGGER.warning("Strategist turn failed: %s", error)
        _write_task_log(builder, TASK_NAME, request, None, [], error=error)
        return Outcome.failure(error)

    result = ChatReply(reply=reply)
    _write_task_log(
        builder,
        TASK_NAME,
        request,
        None,
        [{"attempt": 1, "payload": {"messages": messages}, "raw": reply, "parsed": None, "error": None}],
        result=result,
    )
    return Outcome.ok(result)
