"""Market research task: competitor, audience, viability and pricing report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..context_builder import PromptBuilder, TaskPrompt
from ..models.llm_client import LLMClient
from ..normalize import NO_DATA, Field, FieldKind, Schema
from ..structured import Outcome, ResponseModel, Score
from .base import invoke_task, require_text

MODEL = "anthropic/claude-sonnet-4-5:online"


@dataclass(slots=True)
class MarketResearchRequest:
    """Input payload for the market research task."""

    business_description: str

    def validate(self) -> None:
        require_text(self.business_description, "Business description cannot be empty")


class MarketSummary(ResponseModel):
    overview: str
    estimated_market_size: str
    growth_trend: Literal["growing", "stable", "declining"]
    key_insights: list[str]


class Competitor(ResponseModel):
    name: str
    description: str
    strengths: list[str]
    estimated_price_range: str


class TargetAudience(ResponseModel):
    primary_segment: str
    demographics: str
    pain_points: list[str]
    buying_behavior: str


class ViabilityScore(ResponseModel):
    overall: Score
    demand_level: Score
    competition_intensity: Score
    barrier_to_entry: Score
    profit_potential: Score
    reasoning: str


class PricingBenchmark(ResponseModel):
    low: str
    median: str
    high: str
    currency: str


class MarketResearchResponse(ResponseModel):
    """Structured result returned by the market research task."""

    market_summary: MarketSummary
    key_competitors: list[Competitor]
    target_audience: TargetAudience
    market_viability_score: ViabilityScore
    pricing_benchmark: PricingBenchmark
    opportunities: list[str]
    risks: list[str]
    recommendations: list[str]


def _score(name: str, *aliases: str) -> Field:
    return Field(name, FieldKind.SCORE, aliases=aliases)


SCHEMA = Schema(
    name="market_research",
    fields=(
        Field(
            "marketSummary",
            FieldKind.OBJECT,
            section=True,
            primary="overview",
            wrap_types=(str,),
            wrap_defaults={"estimatedMarketSize": "Unknown", "growthTrend": "stable", "keyInsights": []},
            fields=(
                Field("overview", aliases=("summary",), default="No overview available",
                      hint="2-3 sentence market overview"),
                Field("estimatedMarketSize", aliases=("marketSize", "size"), default="Unknown",
                      hint="e.g. 'SEK 500M locally'"),
                Field("growthTrend", FieldKind.CHOICE, choices=("growing", "stable", "declining"),
                      default="stable"),
                Field("keyInsights", FieldKind.STRINGS, aliases=("insights", "key_insights"),
                      default=["No insights available"]),
            ),
        ),
        Field(
            "keyCompetitors",
            FieldKind.OBJECTS,
            aliases=("competitors", "key_competitors"),
            section=True,
            fields=(
                Field("name", default="Unknown competitor", hint="real business name"),
                Field("description", aliases=("about", "summary"), default="No description",
                      hint="what they do, 1 sentence"),
                Field("strengths", FieldKind.STRINGS, aliases=("advantages",)),
                Field("estimatedPriceRange", aliases=("priceRange", "pricing", "price_range"),
                      default="Unknown", hint="e.g. '150-300 SEK/hour'"),
            ),
        ),
        Field(
            "targetAudience",
            FieldKind.OBJECT,
            aliases=("target_audience",),
            section=True,
            fields=(
                Field("primarySegment", aliases=("primary", "primary_segment", "segment"),
                      default="General consumers", hint="e.g. 'Young professionals aged 25-40'"),
                Field("demographics", aliases=("characteristics", "demographic"), default="Unknown",
                      hint="brief demographic description"),
                Field("painPoints", FieldKind.STRINGS, aliases=("pain_points", "challenges")),
                Field("buyingBehavior", aliases=("buying_behavior", "behavior"), default="Unknown",
                      hint="how they typically buy this service"),
            ),
        ),
        Field(
            "marketViabilityScore",
            FieldKind.OBJECT,
            aliases=("viabilityScore", "viability"),
            section=True,
            primary="overall",
            wrap_types=(int, float),
            wrap_defaults={
                "demandLevel": 5,
                "competitionIntensity": 5,
                "barrierToEntry": 5,
                "profitPotential": 5,
            },
            sibling_aliases={"reasoning": ("marketViabilityReasoning", "viabilityReasoning")},
            fields=(
                _score("overall", "score", "total"),
                _score("demandLevel", "demand", "demand_level"),
                _score("competitionIntensity", "competition", "competition_intensity"),
                _score("barrierToEntry", "barriers", "barrier_to_entry"),
                _score("profitPotential", "profit", "profit_potential"),
                Field("reasoning", aliases=("explanation",), default="No reasoning provided",
                      hint="1-2 sentences explaining the scores"),
            ),
        ),
        Field(
            "pricingBenchmark",
            FieldKind.OBJECT,
            aliases=("pricing", "pricing_benchmark"),
            section=True,
            fields=(
                Field("low", aliases=("min", "minimum"), default="Unknown", hint="e.g. '100 SEK'"),
                Field("median", aliases=("mid", "average", "recommendedRange"), default="Unknown",
                      hint="e.g. '200 SEK'"),
                Field("high", aliases=("max", "maximum"), default="Unknown", hint="e.g. '350 SEK'"),
                Field("currency", default="SEK", hint="e.g. 'SEK'"),
            ),
        ),
        Field("opportunities", FieldKind.STRINGS, aliases=("opportunity",), default=[NO_DATA], max_items=5),
        Field("risks", FieldKind.STRINGS, aliases=("risk", "threats"), default=[NO_DATA], max_items=5),
        Field(
            "recommendations",
            FieldKind.STRINGS,
            aliases=("recommendation", "suggestions"),
            default=[NO_DATA],
            max_items=5,
        ),
    ),
)


def _render_user(request: MarketResearchRequest) -> str:
    return f"Analyze this business idea and provide market research:\n\n{request.business_description.strip()}"


TASK = TaskPrompt(
    name="market_research",
    persona=(
        "You are a market research analyst. Given a business idea, perform concise market "
        "research using real web data."
    ),
    schema=SCHEMA,
    rules=(
        "The response must be a single JSON object, nothing else",
        "Use the EXACT property names shown above, not synonyms, not alternatives",
        '"marketSummary" MUST be an object with "overview", "estimatedMarketSize", "growthTrend", '
        '"keyInsights", NOT a plain string',
        '"keyCompetitors" MUST be an array of objects each with "name", "description", "strengths", '
        '"estimatedPriceRange", NOT "location", "weaknesses", "pricing"',
        '"targetAudience" MUST have "primarySegment", "demographics", "painPoints", "buyingBehavior", '
        'NOT "primary", "secondary", "characteristics"',
        '"marketViabilityScore" MUST be an object with sub-scores, NOT a single number',
        '"pricingBenchmark" MUST have "low", "median", "high", "currency", NOT "recommendedRange" or "strategy"',
        "All scores are integers 1-10",
        "Keep arrays to 3-5 items",
        "Use local currency (SEK for Sweden, EUR for EU, etc.)",
        "Use REAL competitor names and price data from web search",
        "If location is unspecified, assume Sweden",
    ),
    mistakes=(
        "marketSummary was a string instead of an object with overview/estimatedMarketSize/growthTrend/keyInsights",
        "keyCompetitors items had wrong keys (location/weaknesses/pricing instead of "
        "description/strengths/estimatedPriceRange)",
        "targetAudience had wrong keys (primary/secondary instead of "
        "primarySegment/demographics/painPoints/buyingBehavior)",
        "marketViabilityScore was a number instead of an object with "
        "overall/demandLevel/competitionIntensity/barrierToEntry/profitPotential/reasoning",
        "pricingBenchmark had wrong keys (recommendedRange instead of low/median/high/currency)",
    ),
    render_user=_render_user,
    model=MODEL,
    temperature=0.3,
    max_tokens=2048,
)


def run(
    request: MarketResearchRequest,
    *,
    client: LLMClient,
    builder: PromptBuilder,
) -> Outcome[MarketResearchResponse]:
    """Execute the market research task via the shared LLM client."""
    return invoke_task(TASK, request, MarketResearchResponse, client=client, builder=builder)
