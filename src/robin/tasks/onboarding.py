"""Onboarding turn: free-text discovery chat that ends with a SUMMARY line."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..context_builder import PromptBuilder
from ..models.llm_client import LLMClient, LLMClientError
from ..structured import Outcome, ResponseModel
from .base import ChatMessage, RequestValidationError, _write_task_log, require_text

LOGGER = logging.getLogger(__name__)

TASK_NAME = "onboarding"
SUMMARY_MARKER = "SUMMARY:"
_SUMMARY_PREFIX = re.compile(r"^SUMMARY:\s*", re.IGNORECASE)

SYSTEM_PROMPT = """### GLOBAL RULES (apply to all responses)
- NO GLAZING: Do not use words like "fantastic," "amazing," or "congratulations." Stay professional and grounded.
- LANGUAGE: Always respond in the same language the user writes in.

### ROLE
You are a minimalist Business Discovery Assistant.

### GOAL
Gather three specific data points:
1. Business Idea
2. Key Facts (User skills, heritage, assets)
3. Target Area (City/Region)

### RULES
1. STERN CONSTRAINT: Maximum 2 short sentences per response.
2. ONE AT A TIME: Ask for one piece of information at a time.
3. NO IDEA FALLBACK: If the user has no business idea, ask for their skills and location first, then suggest exactly 2 concrete local service business ideas in one sentence each. Let them choose before continuing.
4. TRIGGER: Once all 3 points are collected, output ONLY this and nothing else:
   SUMMARY: [Business Idea] | [Key Facts] | [Target Area]
   Ready. Click 'Market Research' to continue.

### TONE
Direct, efficient, and professional."""


@dataclass(slots=True)
class OnboardingRequest:
    """Latest user message plus the conversation so far."""

    message: str
    history: list[ChatMessage] = field(default_factory=list)

    def validate(self) -> None:
        require_text(self.message, "Message cannot be empty")


class OnboardingReply(ResponseModel):
    done: bool
    assistant_message: str
    summary: Optional[str] = None


def extract_summary(reply: str) -> Optional[str]:
    """Return the text after ``SUMMARY:`` on the first line carrying it."""
    for line in reply.splitlines():
        stripped = line.strip()
        if stripped.startswith(SUMMARY_MARKER):
            return _SUMMARY_PREFIX.sub("", stripped).strip()
    return None


def run(
    request: OnboardingRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[OnboardingReply]:
    """Send one discovery turn; a single attempt, no JSON handling."""
    try:
        request.validate()
    except RequestValidationError as error:
        return Outcome.failure(error)

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages.extend(turn.to_wire() for turn in request.history)
    messages.append({"role": "user", "content": request.message.strip()})

    try:
        reply = client.complete(messages, model=client.model_for(TASK_NAME), temperature=0.0)
    except LLMClientError as error:
        LOGGER.warning("Onboarding turn failed: %s", error)
        _write_task_log(builder, TASK_NAME, request, None, [], error=error)
        return Outcome.failure(error)

    summary = extract_summary(reply)
    result = OnboardingReply(done=summary is not None, summary=summary, assistant_message=reply)
    _write_task_log(
        builder,
        TASK_NAME,
        request,
        None,
        [{"attempt": 1, "payload": {"messages": messages}, "raw": reply, "parsed": None, "error": None}],
        result=result,
    )
    return Outcome.ok(result)
