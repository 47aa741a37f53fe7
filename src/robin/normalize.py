"""Declarative response schemas and the shared normalizer for model replies."""

from __future__ import annotations

import copy
import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "NO_DATA",
    "Field",
    "FieldKind",
    "MissingSectionsError",
    "Schema",
    "clamp_score",
    "normalize",
]


NO_DATA = "No data available"


class FieldKind(str, Enum):
    """Value shapes understood by the normalizer."""

    STRING = "string"
    STRINGS = "strings"
    SCORE = "score"
    CHOICE = "choice"
    OBJECT = "object"
    OBJECTS = "objects"


class MissingSectionsError(ValueError):
    """Raised when whole sections of a reply cannot be found under any alias."""

    def __init__(self, sections: Sequence[str]) -> None:
        self.sections = tuple(sections)
        super().__init__(f"Missing or invalid sections: {', '.join(self.sections)}")


@dataclass(frozen=True, slots=True, eq=False)
class Field:
    """Describe one expected key: where to look for it and how to repair it.

    ``default`` may be a callable, in which case it is invoked each time the
    fallback is needed. ``primary``/``wrap_types`` enable shape coercion for
    object fields (and for the items of object lists): a value of one of the
    wrap types becomes ``{primary: value, **wrap_defaults}``, with
    ``sibling_aliases`` allowing keys of the enclosing object to fill in
    wrapped sub-fields.
    """

    name: str
    kind: FieldKind = FieldKind.STRING
    aliases: tuple[str, ...] = ()
    default: Any = None
    hint: str = ""
    section: bool = False
    nullable: bool = False
    choices: tuple[str, ...] = ()
    bounds: tuple[int, int] = (1, 10)
    min_items: int = 0
    max_items: int | None = None
    fields: tuple["Field", ...] = ()
    primary: str | None = None
    wrap_types: tuple[type, ...] = ()
    wrap_defaults: Mapping[str, Any] = field(default_factory=dict)
    sibling_aliases: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def keys(self) -> tuple[str, ...]:
        """Return the canonical name followed by its accepted synonyms."""
        return (self.name, *self.aliases)

    def fallback(self) -> Any:
        """Return a fresh copy of the declared default."""
        value = self.default() if callable(self.default) else self.default
        if value is None:
            if self.kind in {FieldKind.STRINGS, FieldKind.OBJECTS}:
                return []
            if self.kind is FieldKind.STRING and not self.nullable:
                return ""
        return copy.deepcopy(value)

    def shape(self) -> Any:
        """Render the example value shown to the model for this field."""
        if self.kind is FieldKind.OBJECT:
            return {child.name: child.shape() for child in self.fields}
        if self.kind is FieldKind.OBJECTS:
            return [{child.name: child.shape() for child in self.fields}]
        if self.kind is FieldKind.STRINGS:
            item = f"<string: {self.hint}>" if self.hint else "<string>"
            return [item, "<string>"]
        if self.kind is FieldKind.SCORE:
            low, high = self.bounds
            return f"<integer {low}-{high}>"
        if self.kind is FieldKind.CHOICE:
            options = ", ".join(f"'{choice}'" for choice in self.choices)
            return f"<string: EXACTLY one of {options}>"
        label = "string or null" if self.nullable else "string"
        return f"<{label}: {self.hint}>" if self.hint else f"<{label}>"


@dataclass(frozen=True, slots=True, eq=False)
class Schema:
    """Target shape for one task's normalized result."""

    name: str
    fields: tuple[Field, ...]
    envelopes: tuple[str, ...] = ()

    @property
    def sections(self) -> tuple[str, ...]:
        """Return the names of the fields whose absence is a hard failure."""
        return tuple(item.name for item in self.fields if item.section)

    def shape(self) -> dict[str, Any]:
        """Return the example JSON object described by this schema."""
        return {item.name: item.shape() for item in self.fields}

    def shape_text(self) -> str:
        """Return the example JSON object as indented text for prompts."""
        return json.dumps(self.shape(), indent=2, ensure_ascii=False)

    def canonical_names(self) -> set[str]:
        """Return every canonical field name, including nested ones."""
        names: set[str] = set()
        pending = list(self.fields)
        while pending:
            item = pending.pop()
            names.add(item.name)
            pending.extend(item.fields)
        return names


def normalize(schema: Schema, payload: Any) -> dict[str, Any]:
    """Repair ``payload`` into ``schema`` or raise ``MissingSectionsError``.

    Field-level anomalies (renamed keys, wrong primitive types, out-of-range
    scores, unknown enum values) are repaired silently. Only sections that
    cannot be found at all are reported, and all of them are reported at once.
    """
    data = _unwrap(schema, payload)
    missing: list[str] = []
    result = _normalize_fields(schema.fields, data, missing)
    if missing:
        raise MissingSectionsError(missing)
    return result


def clamp_score(value: Any, bounds: tuple[int, int] = (1, 10)) -> int:
    """Coerce ``value`` into the closed integer range, midpoint when unparseable."""
    low, high = bounds
    number = _to_number(value)
    if number is None:
        return (low + high) // 2
    number = min(max(number, float(low)), float(high))
    return int(math.floor(number + 0.5))


def _unwrap(schema: Schema, payload: Any) -> Mapping[str, Any]:
    """Return the mapping holding the schema fields, descending into envelopes."""
    if not isinstance(payload, Mapping):
        return {}
    known = {key for item in schema.fields for key in item.keys}
    if any(key in payload for key in known):
        return payload
    for envelope in schema.envelopes:
        inner = payload.get(envelope)
        if isinstance(inner, Mapping):
            return inner
    return payload


def _resolve(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first non-null value stored under any of ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _normalize_fields(
    fields: Sequence[Field],
    data: Mapping[str, Any],
    missing: list[str] | None,
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for item in fields:
        raw = _resolve(data, item.keys)
        sink = missing if item.section else None
        result[item.name] = _normalize_value(item, raw, data, sink)
    return result


def _normalize_value(
    item: Field,
    raw: Any,
    parent: Mapping[str, Any],
    missing: list[str] | None,
) -> Any:
    """Apply the coercion rule for ``item.kind`` to ``raw``.

    ``missing`` is only supplied for top-level sections; the section name is
    appended to it when ``raw`` is unusable.
    """
    kind = item.kind
    absent = False

    if kind is FieldKind.OBJECT:
        if _wraps(item, raw):
            raw = _wrap(item, raw, parent)
        if not isinstance(raw, Mapping):
            absent = True
            raw = {}
        value: Any = _normalize_fields(item.fields, raw, None)

    elif kind is FieldKind.OBJECTS:
        if isinstance(raw, list):
            entries = raw[: item.max_items] if item.max_items is not None else raw
            absent = len(entries) < max(item.min_items, 1)
            value = []
            for entry in entries:
                if _wraps(item, entry):
                    entry = _wrap(item, entry, parent)
                if not isinstance(entry, Mapping):
                    entry = {}
                value.append(_normalize_fields(item.fields, entry, None))
        else:
            absent = True
            value = item.fallback()

    elif kind is FieldKind.STRINGS:
        if isinstance(raw, list):
            value = [_stringify(entry) for entry in raw if entry is not None]
            if item.max_items is not None:
                value = value[: item.max_items]
            absent = len(value) < item.min_items
        else:
            absent = True
            value = item.fallback()

    elif kind is FieldKind.SCORE:
        absent = raw is None
        value = clamp_score(raw, item.bounds)

    elif kind is FieldKind.CHOICE:
        absent = raw is None
        value = raw if isinstance(raw, str) and raw in item.choices else item.fallback()

    else:
        absent = raw is None or (isinstance(raw, str) and not raw.strip())
        value = _coerce_string(item, raw)

    if absent and missing is not None:
        missing.append(item.name)
    return value


def _coerce_string(item: Field, raw: Any) -> Any:
    if isinstance(raw, str):
        return raw
    if raw is None:
        return item.fallback()
    return _stringify(raw)


def _wraps(item: Field, value: Any) -> bool:
    """Return True when ``value`` is a primitive that ``item`` knows how to wrap."""
    if not item.primary or not item.wrap_types or isinstance(value, bool):
        return False
    return isinstance(value, item.wrap_types)


def _wrap(item: Field, value: Any, parent: Mapping[str, Any]) -> dict[str, Any]:
    wrapped: dict[str, Any] = {item.primary: value}
    for key, default in item.wrap_defaults.items():
        wrapped[key] = copy.deepcopy(default)
    for key, aliases in item.sibling_aliases.items():
        sibling = _resolve(parent, aliases)
        if sibling is not None:
            wrapped[key] = sibling
    return wrapped


def _stringify(value: Any) -> str:
    """Render a JSON scalar or container as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _to_number(value: Any) -> float | None:
    """Parse ``value`` as a number, returning ``None`` for text and NaN."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf if value > 0 else -math.inf
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number
