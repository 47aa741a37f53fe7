from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from typing import Any, Callable, List, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from robin.context_builder import PromptBuilder  # noqa: E402
from robin.models.openrouter import OpenRouterClient  # noqa: E402


def completion_body(content: str) -> str:
    """Wrap ``content`` in a chat-completions response body."""
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})


Reply = Union[str, dict, Exception]


class ScriptedTransport:
    """Fake transport replaying canned model replies and recording payloads.

    Strings are returned as message content, dicts are serialised to JSON
    content, and exceptions are raised. The last reply repeats once the
    script is exhausted.
    """

    def __init__(self, *replies: Reply) -> None:
        self._replies: List[Reply] = list(replies)
        self.payloads: List[dict[str, Any]] = []

    @property
    def calls(self) -> int:
        return len(self.payloads)

    def __call__(self, payload: dict[str, Any]) -> str:
        self.payloads.append(copy.deepcopy(payload))
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return completion_body(reply)


@pytest.fixture()
def make_client() -> Callable[..., tuple[OpenRouterClient, ScriptedTransport]]:
    """Return a factory building an OpenRouter client over a scripted transport."""

    def _factory(*replies: Reply, **kwargs: Any) -> tuple[OpenRouterClient, ScriptedTransport]:
        transport = ScriptedTransport(*replies)
        kwargs.setdefault("api_key", "test-key")
        return OpenRouterClient(transport=transport, **kwargs), transport

    return _factory


@pytest.fixture()
def builder() -> PromptBuilder:
    return PromptBuilder()


def market_payload(**overrides: Any) -> dict[str, Any]:
    """Return a well-formed market research reply."""
    payload: dict[str, Any] = {
        "marketSummary": {
            "overview": "Specialty coffee demand in Stockholm keeps rising.",
            "estimatedMarketSize": "SEK 2B",
            "growthTrend": "growing",
            "keyInsights": ["Commuters buy daily", "Oat milk is standard"],
        },
        "keyCompetitors": [
            {
                "name": "Espresso House",
                "description": "National coffee chain.",
                "strengths": ["Locations"],
                "estimatedPriceRange": "40-60 SEK",
            }
        ],
        "targetAudience": {
            "primarySegment": "Office workers aged 25-45",
            "demographics": "Urban professionals",
            "painPoints": ["Long queues"],
            "buyingBehavior": "Habitual morning purchase",
        },
        "marketViabilityScore": {
            "overall": 7,
            "demandLevel": 8,
            "competitionIntensity": 9,
            "barrierToEntry": 4,
            "profitPotential": 6,
            "reasoning": "Strong demand, crowded market.",
        },
        "pricingBenchmark": {"low": "35 SEK", "median": "45 SEK", "high": "65 SEK", "currency": "SEK"},
        "opportunities": ["Subscriptions"],
        "risks": ["Rent"],
        "recommendations": ["Start with a cart"],
    }
    payload.update(overrides)
    return payload


def names_payload(count: int = 5) -> dict[str, Any]:
    return {"names": [{"name": f"Name {index}", "reasoning": f"Reason {index}"} for index in range(1, count + 1)]}


def business_type_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "recommendedType": "Aktiebolag (AB)",
        "reasoning": "Limited liability suits a growing cafe.",
        "alternatives": [
            {"type": "Enskild firma", "pros": ["Cheap"], "cons": ["Personal liability"]},
        ],
        "considerations": ["Register for VAT"],
    }
    payload.update(overrides)
    return payload
