"""Profile extraction task: derive a business profile from the onboarding chat."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Literal, Optional

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient
from ..normalize import Field, FieldKind, Schema
from ..structured import Outcome, ResponseModel
from .base import ChatMessage, invoke_task, render_transcript, require_history

GENERAL_INDUSTRY = "General (Needs Focus)"
LAUNCH_WINDOW_DAYS = 90


def default_launch_date() -> str:
    """Return the ISO date ``LAUNCH_WINDOW_DAYS`` from today."""
    return (date.today() + timedelta(days=LAUNCH_WINDOW_DAYS)).isoformat()


@dataclass(slots=True)
class ProfileRequest:
    """Input payload for profile extraction."""

    history: list[ChatMessage]
    current_profile: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        require_history(self.history)


class BusinessProfile(ResponseModel):
    """Business profile shared with the task planner."""

    industry: str
    target_audience: str
    product_type: str
    budget: str
    launch_date: str
    business_type: Literal["New Startup", "Existing Business"]
    target_region: Literal["Local", "National", "Global"]
    website_url: Optional[str] = None
    golden_nuggets: list[str] = []


SCHEMA = Schema(
    name="profile",
    fields=(
        Field("industry", aliases=("sector", "niche"), default=GENERAL_INDUSTRY,
              hint=f"specific niche, or '{GENERAL_INDUSTRY}' if undefined"),
        Field("targetAudience", aliases=("audience", "target_audience"), section=True,
              hint="who the business serves"),
        Field("productType", aliases=("product", "product_type", "offering"), section=True,
              hint="what is being sold"),
        Field("budget", default="Unknown", hint="e.g. '50,000 SEK'"),
        Field("launchDate", aliases=("launch_date",), default=default_launch_date,
              hint="ISO date YYYY-MM-DD"),
        Field("businessType", FieldKind.CHOICE, aliases=("business_type", "stage"),
              choices=("New Startup", "Existing Business"), default="New Startup"),
        Field("targetRegion", FieldKind.CHOICE, aliases=("region", "target_region"),
              choices=("Local", "National", "Global"), default="Local"),
        Field("websiteUrl", aliases=("website", "website_url", "url"), nullable=True,
              hint="existing website URL"),
        Field("goldenNuggets", FieldKind.STRINGS, aliases=("golden_nuggets", "nuggets", "uniqueAssets"),
              hint="heritage, unique skill or family secret"),
    ),
    envelopes=("profile", "businessProfile"),
)


def _render_user(request: ProfileRequest) -> str:
    sections = [
        "Analyze the conversation to extract a Business Profile.",
        "Look for 'Golden Nuggets' (heritage, unique skills, family secrets).",
        'Infer "Local" vs "National" vs "Global".',
    ]
    if request.current_profile:
        current = json.dumps(request.current_profile, ensure_ascii=False, sort_keys=True)
        sections.append(f"Current profile (update it, keep values the user has not changed):\n{current}")
    sections.append(f"Conversation:\n{render_transcript(request.history)}")
    return "\n\n".join(sections)


TASK = TaskPrompt(
    name="profile",
    persona="You are a business analyst who turns founder conversations into structured business profiles.",
    schema=SCHEMA,
    rules=(
        f'If the user has not defined a specific niche yet, use "{GENERAL_INDUSTRY}" for "industry"',
        '"businessType" is "Existing Business" only when the user already operates the business',
        '"targetRegion" must be "Local", "National" or "Global"',
        '"websiteUrl" is null when no website was mentioned',
        "Do NOT wrap the profile in another object",
    ),
    mistakes=(
        'The profile was wrapped in a "profile" or "businessProfile" object',
        '"targetAudience" or "productType" was missing',
        '"businessType" or "targetRegion" used a value outside the allowed set',
    ),
    render_user=_render_user,
    temperature=0.2,
    max_tokens=1024,
)


def run(
    request: ProfileRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[BusinessProfile]:
    """Execute profile extraction via the shared LLM client."""
    return invoke_task(TASK, request, BusinessProfile, client=client, builder=builder)
