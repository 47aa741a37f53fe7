"""Business type task: recommend a Swedish legal entity form."""

from __future__ import annotations

from dataclasses import dataclass

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient
from ..normalize import Field, FieldKind, Schema
from ..structured import Outcome, ResponseModel
from .base import invoke_task, require_text

ADVISOR_FALLBACK = "Consult a Swedish business advisor for personalized guidance"


@dataclass(slots=True)
class BusinessTypeRequest:
    """Input payload for the business type task.

    Both the description and the business name are required; the name is
    interpolated into the user prompt, so a blank one is rejected before any
    call is made.
    """

    business_description: str
    business_name: str
    market_research_summary: str = ""

    def validate(self) -> None:
        require_text(self.business_description, "Business description cannot be empty")
        require_text(self.business_name, "Business name cannot be empty")


class EntityAlternative(ResponseModel):
    type: str
    pros: list[str]
    cons: list[str]


class BusinessTypeResponse(ResponseModel):
    """Structured result returned by the business type task."""

    recommended_type: str
    reasoning: str
    alternatives: list[EntityAlternative]
    considerations: list[str]


SCHEMA = Schema(
    name="business_type",
    fields=(
        Field("recommendedType", aliases=("recommended", "type"), section=True,
              hint="e.g. 'Aktiebolag (AB)'"),
        Field("reasoning", aliases=("explanation", "reason"), section=True,
              hint="2-3 sentences explaining why this type is best for this business"),
        Field(
            "alternatives",
            FieldKind.OBJECTS,
            aliases=("options",),
            section=True,
            max_items=3,
            fields=(
                Field("type", aliases=("name",), default="Unknown", hint="e.g. 'Enskild firma'"),
                Field("pros", FieldKind.STRINGS, aliases=("advantages",)),
                Field("cons", FieldKind.STRINGS, aliases=("disadvantages",)),
            ),
        ),
        Field(
            "considerations",
            FieldKind.STRINGS,
            aliases=("notes", "tips"),
            default=[ADVISOR_FALLBACK],
            max_items=4,
            hint="important thing to consider",
        ),
    ),
)


def _render_user(request: BusinessTypeRequest) -> str:
    return (
        "Recommend the best Swedish business entity type for this business:\n\n"
        f"Business name: {request.business_name.strip()}\n"
        f"Business idea: {request.business_description.strip()}\n"
        f"Market context: {request.market_research_summary.strip()}"
    )


TASK = TaskPrompt(
    name="business_type",
    persona=(
        "You are a Swedish business registration expert. Given a business idea, name, and market "
        "context, recommend the most appropriate Swedish business entity type.\n\n"
        "The main Swedish business types are:\n"
        "- Enskild firma (Sole proprietorship) - simplest, owner personally liable, no minimum capital\n"
        "- Handelsbolag (HB) (Trading partnership) - 2+ partners, personal liability, no minimum capital\n"
        "- Kommanditbolag (KB) (Limited partnership) - like HB but some partners have limited liability\n"
        "- Aktiebolag (AB) (Limited company) - limited liability, requires SEK 25,000 minimum share capital\n"
        "- Ekonomisk forening (Economic association/cooperative) - at least 3 members, democratic governance"
    ),
    schema=SCHEMA,
    rules=(
        '"recommendedType" must be a real Swedish business entity type with its abbreviation',
        '"reasoning" should explain why this type best fits the specific business',
        '"alternatives" should list 2-3 other viable options with pros and cons',
        '"considerations" should list 3-4 practical things to consider (tax implications, '
        "registration requirements, etc.)",
        "Keep all text concise and actionable",
        "Consider the business scale, liability needs, number of founders, and capital requirements",
    ),
    mistakes=(
        '"recommendedType" must be a string',
        '"reasoning" must be a string',
        '"alternatives" must be an array of objects with "type", "pros" (string[]), "cons" (string[])',
        '"considerations" must be an array of strings',
    ),
    render_user=_render_user,
    temperature=0.3,
    max_tokens=1024,
)


def run(
    request: BusinessTypeRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[BusinessTypeResponse]:
    """Execute the business type task via the shared LLM client."""
    return invoke_task(TASK, request, BusinessTypeResponse, client=client, builder=builder)
