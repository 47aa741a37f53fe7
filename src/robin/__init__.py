"""Robin Business Builder: structured LLM tasks for business ideation."""

__all__ = ["__version__"]

__version__ = "0.1.0"
