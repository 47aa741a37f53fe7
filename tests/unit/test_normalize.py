"""Normalizer repairs field-level drift and reports missing sections."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import market_payload, names_payload
from robin.normalize import NO_DATA, Field, FieldKind, MissingSectionsError, Schema, clamp_score, normalize
from robin.tasks.business_names import SCHEMA as NAMES_SCHEMA
from robin.tasks.business_type import SCHEMA as BUSINESS_TYPE_SCHEMA
from robin.tasks.market_research import SCHEMA as MARKET_SCHEMA
from robin.tasks.profile import SCHEMA as PROFILE_SCHEMA
from robin.tasks.task_plan import SCHEMA as TASK_PLAN_SCHEMA


def test_well_formed_market_reply_is_unchanged() -> None:
    payload = market_payload()
    assert normalize(MARKET_SCHEMA, payload) == payload


@pytest.mark.parametrize(
    "schema,payload",
    [
        (MARKET_SCHEMA, market_payload(marketSummary="Plain text", marketViabilityScore=12.4, risks="none")),
        (NAMES_SCHEMA, {"suggestions": names_payload(8)["names"]}),
        (BUSINESS_TYPE_SCHEMA, {"recommended": "AB", "explanation": "Why", "options": [{"name": "HB"}]}),
        (PROFILE_SCHEMA, {"profile": {"audience": "Parents", "product": "Toys", "targetRegion": "Mars"}}),
        (TASK_PLAN_SCHEMA, {"items": [{"title": "Call", "priority": "urgent", "type": 3}]}),
    ],
)
def test_normalization_is_idempotent(schema: Schema, payload: dict) -> None:
    once = normalize(schema, payload)
    assert normalize(schema, once) == once


def test_string_market_summary_is_wrapped() -> None:
    result = normalize(MARKET_SCHEMA, market_payload(marketSummary="Some plain text"))

    assert result["marketSummary"] == {
        "overview": "Some plain text",
        "estimatedMarketSize": "Unknown",
        "growthTrend": "stable",
        "keyInsights": [],
    }


def test_numeric_viability_score_is_wrapped_with_sibling_reasoning() -> None:
    payload = market_payload(marketViabilityScore=7)
    payload["marketViabilityReasoning"] = "Busy street."

    result = normalize(MARKET_SCHEMA, payload)

    assert result["marketViabilityScore"] == {
        "overall": 7,
        "demandLevel": 5,
        "competitionIntensity": 5,
        "barrierToEntry": 5,
        "profitPotential": 5,
        "reasoning": "Busy street.",
    }


def test_numeric_viability_score_without_reasoning_uses_fallback() -> None:
    result = normalize(MARKET_SCHEMA, market_payload(marketViabilityScore=3))
    assert result["marketViabilityScore"]["reasoning"] == "No reasoning provided"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("seven", 5),
        (None, 5),
        (float("nan"), 5),
        ("", 5),
        (11.7, 10),
        (-3, 1),
        (7.5, 8),
        (2.4, 2),
        ("8", 8),
        (" 6 ", 6),
        (True, 1),
    ],
)
def test_clamp_score(value: object, expected: int) -> None:
    assert clamp_score(value) == expected


def test_scores_inside_viability_object_are_clamped() -> None:
    score = dict(market_payload()["marketViabilityScore"], overall="seven", demandLevel=42)
    result = normalize(MARKET_SCHEMA, market_payload(marketViabilityScore=score))

    assert result["marketViabilityScore"]["overall"] == 5
    assert result["marketViabilityScore"]["demandLevel"] == 10


def test_aliases_are_resolved_to_canonical_names() -> None:
    payload = market_payload()
    payload["competitors"] = payload.pop("keyCompetitors")
    payload["pricing"] = {"min": "10 SEK", "average": "20 SEK", "maximum": "30 SEK"}
    del payload["pricingBenchmark"]

    result = normalize(MARKET_SCHEMA, payload)

    assert result["keyCompetitors"][0]["name"] == "Espresso House"
    assert result["pricingBenchmark"] == {"low": "10 SEK", "median": "20 SEK", "high": "30 SEK", "currency": "SEK"}
    assert "competitors" not in result


def test_first_non_null_alias_wins() -> None:
    payload = market_payload()
    payload["keyCompetitors"] = None
    payload["competitors"] = [{"name": "Alias Cafe"}]

    result = normalize(MARKET_SCHEMA, payload)

    assert result["keyCompetitors"] == [
        {
            "name": "Alias Cafe",
            "description": "No description",
            "strengths": [],
            "estimatedPriceRange": "Unknown",
        }
    ]


def test_missing_sections_are_reported_together_in_order() -> None:
    with pytest.raises(MissingSectionsError) as excinfo:
        normalize(MARKET_SCHEMA, {"opportunities": ["x"]})

    assert excinfo.value.sections == (
        "marketSummary",
        "keyCompetitors",
        "targetAudience",
        "marketViabilityScore",
        "pricingBenchmark",
    )
    assert str(excinfo.value) == (
        "Missing or invalid sections: marketSummary, keyCompetitors, targetAudience, "
        "marketViabilityScore, pricingBenchmark"
    )


def test_empty_competitor_list_is_a_missing_section() -> None:
    with pytest.raises(MissingSectionsError) as excinfo:
        normalize(MARKET_SCHEMA, market_payload(keyCompetitors=[]))
    assert excinfo.value.sections == ("keyCompetitors",)


def test_optional_lists_default_to_sentinel_and_truncate() -> None:
    payload = market_payload(opportunities="lots", risks=[f"risk {index}" for index in range(7)])
    payload.pop("recommendations")

    result = normalize(MARKET_SCHEMA, payload)

    assert result["opportunities"] == [NO_DATA]
    assert result["recommendations"] == [NO_DATA]
    assert result["risks"] == [f"risk {index}" for index in range(5)]


def test_enum_values_outside_the_set_fall_back() -> None:
    summary = dict(market_payload()["marketSummary"], growthTrend="Booming")
    result = normalize(MARKET_SCHEMA, market_payload(marketSummary=summary))
    assert result["marketSummary"]["growthTrend"] == "stable"


def test_enum_matching_is_case_sensitive() -> None:
    result = normalize(TASK_PLAN_SCHEMA, {"tasks": [{"title": "A", "priority": "high", "type": "Product"}]})
    assert result["tasks"][0]["priority"] == "Medium"
    assert result["tasks"][0]["type"] == "Product"


def test_scalars_are_stringified() -> None:
    schema = Schema(
        name="scalars",
        fields=(
            Field("flag", section=True),
            Field("count", section=True),
            Field("ratio", section=True),
            Field("blob", section=True),
            Field("items", FieldKind.STRINGS),
        ),
    )

    result = normalize(
        schema,
        {"flag": True, "count": 3.0, "ratio": 2.5, "blob": {"a": 1}, "items": [1, None, False, "x"]},
    )

    assert result == {
        "flag": "true",
        "count": "3",
        "ratio": "2.5",
        "blob": '{"a":1}',
        "items": ["1", "false", "x"],
    }


def test_blank_required_string_is_missing() -> None:
    with pytest.raises(MissingSectionsError) as excinfo:
        normalize(BUSINESS_TYPE_SCHEMA, {"recommendedType": "  ", "reasoning": "ok", "alternatives": [{}]})
    assert excinfo.value.sections == ("recommendedType",)


def test_names_are_truncated_to_five() -> None:
    result = normalize(NAMES_SCHEMA, names_payload(7))
    assert [item["name"] for item in result["names"]] == [f"Name {index}" for index in range(1, 6)]


def test_fewer_than_five_names_is_a_missing_section() -> None:
    with pytest.raises(MissingSectionsError, match="names"):
        normalize(NAMES_SCHEMA, names_payload(4))


def test_name_reasoning_aliases() -> None:
    entries = [{"name": f"N{index}", "reason": "because"} for index in range(4)]
    entries.append({"description": "no name"})

    result = normalize(NAMES_SCHEMA, {"options": entries})

    assert result["names"][0] == {"name": "N0", "reasoning": "because"}
    assert result["names"][4] == {"name": "Unknown", "reasoning": "no name"}


def test_business_type_defaults() -> None:
    result = normalize(
        BUSINESS_TYPE_SCHEMA,
        {
            "type": "Enskild firma",
            "reason": "Simple start.",
            "alternatives": [{"name": "AB", "advantages": ["Limited liability"]}] * 4,
        },
    )

    assert result["recommendedType"] == "Enskild firma"
    assert len(result["alternatives"]) == 3
    assert result["alternatives"][0] == {"type": "AB", "pros": ["Limited liability"], "cons": []}
    assert result["considerations"] == ["Consult a Swedish business advisor for personalized guidance"]


def test_profile_envelope_and_defaults() -> None:
    result = normalize(
        PROFILE_SCHEMA,
        {"businessProfile": {"targetAudience": "Families", "productType": "Baked goods", "businessType": "Hobby"}},
    )

    assert result["industry"] == "General (Needs Focus)"
    assert result["budget"] == "Unknown"
    assert result["businessType"] == "New Startup"
    assert result["targetRegion"] == "Local"
    assert result["websiteUrl"] is None
    assert result["goldenNuggets"] == []
    assert result["launchDate"] == (date.today() + timedelta(days=90)).isoformat()


def test_profile_missing_sections() -> None:
    with pytest.raises(MissingSectionsError) as excinfo:
        normalize(PROFILE_SCHEMA, {"industry": "Bakery"})
    assert excinfo.value.sections == ("targetAudience", "productType")


def test_non_object_payload_reports_every_section() -> None:
    with pytest.raises(MissingSectionsError) as excinfo:
        normalize(TASK_PLAN_SCHEMA, ["not", "an", "object"])
    assert excinfo.value.sections == ("tasks",)


def test_task_plan_defaults_and_truncation() -> None:
    result = normalize(TASK_PLAN_SCHEMA, {"actionItems": [{"title": f"T{index}"} for index in range(7)]})

    assert result["theme"] == "General Focus"
    assert result["analysis"] == ""
    assert len(result["tasks"]) == 5
    assert result["tasks"][0] == {"title": "T0", "description": "", "priority": "Medium", "type": "Validation"}


def test_callable_default_is_evaluated_per_call() -> None:
    calls: list[int] = []

    def _default() -> str:
        calls.append(1)
        return "fresh"

    schema = Schema(name="callable", fields=(Field("value", default=_default),))
    assert normalize(schema, {}) == {"value": "fresh"}
    assert normalize(schema, {}) == {"value": "fresh"}
    assert len(calls) == 2


@pytest.mark.parametrize("value,expected", [(10**400, 10), (-(10**400), 1), ("1e400", 10)])
def test_clamp_score_handles_numbers_beyond_float_range(value: object, expected: int) -> None:
    assert clamp_score(value) == expected
