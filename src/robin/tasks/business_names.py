"""Business naming task: exactly five name suggestions with reasoning."""

from __future__ import annotations

from dataclasses import dataclass

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient
from ..normalize import Field, FieldKind, Schema
from ..structured import Outcome, ResponseModel
from .base import invoke_task, require_text

NAME_COUNT = 5


@dataclass(slots=True)
class BusinessNamesRequest:
    """Input payload for the naming task."""

    business_description: str
    market_research_summary: str = ""

    def validate(self) -> None:
        require_text(self.business_description, "Business description cannot be empty")


class NameSuggestion(ResponseModel):
    name: str
    reasoning: str


class BusinessNamesResponse(ResponseModel):
    """Structured result returned by the naming task."""

    names: list[NameSuggestion]


SCHEMA = Schema(
    name="business_names",
    fields=(
        Field(
            "names",
            FieldKind.OBJECTS,
            aliases=("suggestions", "options"),
            section=True,
            min_items=NAME_COUNT,
            max_items=NAME_COUNT,
            fields=(
                Field("name", default="Unknown", hint="the business name"),
                Field("reasoning", aliases=("reason", "description"),
                      hint="1 sentence explaining why this name works"),
            ),
        ),
    ),
)


def _render_user(request: BusinessNamesRequest) -> str:
    return (
        "Suggest 5 business names for this idea:\n\n"
        f"Business idea: {request.business_description.strip()}\n\n"
        f"Market context: {request.market_research_summary.strip()}"
    )


TASK = TaskPrompt(
    name="business_names",
    persona=(
        "You are a creative brand naming expert specializing in Scandinavian and international "
        "business names. Given a business idea and market context, suggest exactly 5 unique, "
        "memorable business names."
    ),
    schema=SCHEMA,
    rules=(
        'Suggest EXACTLY 5 names in the "names" array',
        "Each name should be distinct in style (e.g., one modern/tech, one Swedish, one playful, "
        "one professional, one descriptive)",
        "Names should be easy to pronounce, spell, and remember",
        "Consider availability as a domain name and social media handle",
        'Each "reasoning" should be 1 concise sentence explaining why the name fits the business',
        "Names should feel appropriate for the Swedish/Nordic market unless the business is "
        "explicitly international",
        'Do NOT use generic names like "BusinessPro" or "TechSolutions"',
    ),
    mistakes=(
        '"names" was missing or renamed; it must be an array containing exactly 5 objects',
        'Each object must have "name" and "reasoning" string fields',
    ),
    render_user=_render_user,
    temperature=0.7,
    max_tokens=1024,
)


def run(
    request: BusinessNamesRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[BusinessNamesResponse]:
    """Execute the naming task via the shared LLM client."""
    return invoke_task(TASK, request, BusinessNamesResponse, client=client, builder=builder)
