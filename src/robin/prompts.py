"""Prompt templates and helpers shared across Robin tasks."""

from __future__ import annotations

from typing import Sequence

JSON_RESPONSE_INSTRUCTION = (
    "CRITICAL: You MUST respond with ONLY a raw JSON object. No markdown. No code fences. "
    "No explanation. No text before or after. JUST the JSON."
)

SCHEMA_PREAMBLE = (
    "The JSON MUST use EXACTLY these property names. Do NOT rename, restructure, "
    "or add extra properties:"
)

CORRECTION_SUFFIX = (
    "Return ONLY the corrected JSON object using EXACTLY the property names from the schema. "
    "No markdown, no explanation."
)

INVALID_RESPONSE_PLACEHOLDER = "(invalid response)"


def render_schema_block(shape_text: str) -> str:
    """Render the literal JSON shape the model must reproduce."""
    return f"{SCHEMA_PREAMBLE}\n\n{shape_text}"


def render_rules(rules: Sequence[str]) -> str:
    """Format task rules as the STRICT RULES bullet block."""
    body = "\n".join(f"- {rule.strip()}" for rule in rules if rule.strip())
    if not body:
        return ""
    return f"STRICT RULES:\n{body}"


def render_guidance(guidance: Sequence[str]) -> str:
    """Format configured guidance strings as a single bullet list block."""
    if not guidance:
        return ""
    body = "\n".join(f"- {line.strip()}" for line in guidance if line.strip())
    if not body:
        return ""
    return f"## Additional Guidance\n{body}"


def render_correction(mistakes: Sequence[str]) -> str:
    """Build the follow-up sent after a reply failed validation."""
    lines = ["Your previous response did NOT match the required schema."]
    if mistakes:
        lines.append("Common mistakes:")
        lines.extend(f"- {mistake}" for mistake in mistakes)
    lines.append("")
    lines.append(CORRECTION_SUFFIX)
    return "\n".join(lines)


__all__ = [
    "CORRECTION_SUFFIX",
    "INVALID_RESPONSE_PLACEHOLDER",
    "JSON_RESPONSE_INSTRUCTION",
    "SCHEMA_PREAMBLE",
    "render_correction",
    "render_guidance",
    "render_rules",
    "render_schema_block",
]
