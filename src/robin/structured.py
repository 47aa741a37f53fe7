"""Typed payloads shared by every task: response base model and Outcome envelope."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

Score = Annotated[int, Field(ge=1, le=10)]


class ResponseModel(BaseModel):
    """Frozen base model keyed by camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase JSON-compatible representation."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(slots=True)
class Outcome(Generic[T]):
    """Tagged result returned across the task boundary."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> Outcome[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: Exception | str) -> Outcome[T]:
        return cls(success=False, error=str(error))

    def to_dict(self) -> dict[str, Any]:
        """Render ``{"success": true, "data": ...}`` or ``{"success": false, "error": ...}``."""
        if not self.success:
            return {"success": False, "error": self.error or ""}
        data: Any = self.data
        if isinstance(data, ResponseModel):
            data = data.to_wire()
        elif isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True, mode="json")
        return {"success": True, "data": data}


__all__ = ["Outcome", "ResponseModel", "Score"]
