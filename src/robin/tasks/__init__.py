"""Shared task enumerations."""

from __future__ import annotations

from enum import Enum


class TaskName(str, Enum):
    """Enumeration of the AI-backed operations."""

    MARKET_RESEARCH = "market_research"
    BUSINESS_NAMES = "business_names"
    BUSINESS_TYPE = "business_type"
    PROFILE = "profile"
    TASK_PLAN = "task_plan"
    ONBOARDING = "onboarding"
    CHAT = "chat"


__all__ = ["TaskName"]
