"""CLI commands for running Robin's AI-backed business tasks."""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from .context_builder import PromptBuilder
from .models import LLMClient, OpenRouterClient
from .models.openrouter import DEFAULT_BASE_URL, DEFAULT_MODEL
from .prompts import SCHEMA_PREAMBLE
from .router import TaskRouter
from .structured import Outcome
from .tasks import TaskName
from .tasks.base import ChatMessage
from .tasks.business_names import BusinessNamesRequest
from .tasks.business_type import BusinessTypeRequest
from .tasks.chat import ChatRequest
from .tasks.market_research import MarketResearchRequest
from .tasks.onboarding import OnboardingRequest
from .tasks.profile import ProfileRequest
from .tasks.task_plan import TaskPlanRequest

APP_HELP = "Robin Business Builder CLI entry point."
DEFAULT_CONFIG_NAME = "config.yaml"
OFFLINE_MODEL = "offline"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "project": {
        "name": "robin",
        "description": "Business ideation assistant.",
    },
    "models": {
        "default": DEFAULT_MODEL,
        "base_url": DEFAULT_BASE_URL,
        "timeout": 60,
        "max_attempts": 2,
        "retry_delay": 0,
        "referer": "https://robin.app",
        "title": "Robin Business Builder",
        "tasks": {
            TaskName.MARKET_RESEARCH.value: "anthropic/claude-sonnet-4-5:online",
        },
    },
    "context": {
        "guidance": [],
    },
    "paths": {
        "logs": "data/logs",
    },
}

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _load_or_default(config_path: Path) -> Dict[str, Any]:
    """Load ``config_path`` when present, otherwise fall back to the template."""
    if config_path.exists():
        return load_config(config_path)
    return _copy_config_template()


def _build_client(config: Dict[str, Any], *, use_remote: bool) -> LLMClient:
    """Select either the OpenRouter client or the offline stub."""
    models_cfg = config.get("models") or {}
    model_name = str(models_cfg.get("default", DEFAULT_MODEL))
    offline_model = model_name.lower() == OFFLINE_MODEL or model_name.lower().endswith("-offline")

    task_models: Dict[str, str] = {}
    tasks_cfg = models_cfg.get("tasks")
    if isinstance(tasks_cfg, dict):
        task_models = {str(key): str(value) for key, value in tasks_cfg.items() if value}

    client_kwargs: Dict[str, Any] = {"task_models": task_models}
    max_attempts_value = models_cfg.get("max_attempts")
    if isinstance(max_attempts_value, int) and max_attempts_value > 0:
        client_kwargs["max_attempts"] = max_attempts_value
    retry_delay_value = models_cfg.get("retry_delay")
    if isinstance(retry_delay_value, (int, float)) and retry_delay_value >= 0:
        client_kwargs["retry_delay"] = float(retry_delay_value)

    if not use_remote or offline_model:
        LOGGER.info("Using offline stub client.")
        return _OfflineLLMClient(max_attempts=client_kwargs.get("max_attempts", 2))

    timeout_value = models_cfg.get("timeout")
    if isinstance(timeout_value, (int, float)) and timeout_value > 0:
        client_kwargs["timeout"] = float(timeout_value)
    for key in ("base_url", "referer", "title", "api_key"):
        value = models_cfg.get(key)
        if isinstance(value, str) and value.strip():
            client_kwargs[key] = value.strip()
    LOGGER.info("Using OpenRouter client (%s).", model_name)
    return OpenRouterClient(model=model_name, **client_kwargs)


def _build_router(config_path: Path, use_remote: bool) -> TaskRouter:
    config_data = _load_or_default(config_path)
    builder = PromptBuilder.from_config(config_data, base_dir=config_path.resolve().parent)
    client = _build_client(config_data, use_remote=use_remote)
    return TaskRouter(client=client, builder=builder)


def _read_json(path: Optional[Path], default: Any) -> Any:
    """Read JSON from ``path`` (``-`` for stdin) or return ``default``."""
    if path is None:
        return default
    try:
        if str(path) == "-":
            return json.load(sys.stdin)
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as error:
        typer.echo(f"Failed to read JSON from {path}: {error}")
        raise typer.Exit(code=1) from error


def _read_history(path: Optional[Path]) -> List[ChatMessage]:
    raw = _read_json(path, [])
    if not isinstance(raw, list):
        typer.echo("Conversation history must be a JSON array of {role, text} objects.")
        raise typer.Exit(code=1)
    history: List[ChatMessage] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = "model" if item.get("role") in {"model", "assistant"} else "user"
        history.append(ChatMessage(role=role, text=str(item.get("text") or item.get("content") or "")))
    return history


def _emit(outcome: Outcome[Any]) -> None:
    """Print the outcome envelope and exit non-zero on failure."""
    typer.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    if not outcome.success:
        raise typer.Exit(code=1)


class _OfflineLLMClient(LLMClient):
    """Local stub that fills the schema shown in the system prompt with placeholders."""

    def __init__(self, *, max_attempts: int = 2) -> None:
        super().__init__(OFFLINE_MODEL, max_attempts=max_attempts)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        messages = payload.get("messages") or []
        system_prompt = ""
        if messages and messages[0].get("role") == "system":
            system_prompt = str(messages[0].get("content") or "")
        shape = _schema_from_prompt(system_prompt)
        if shape is None:
            return "SUMMARY: Offline business idea | Offline key facts | Offline target area\nReady."
        return json.dumps(_sample(shape))


def _schema_from_prompt(system_prompt: str) -> Optional[Any]:
    """Return the JSON shape printed after the schema preamble, if any."""
    start = system_prompt.find(SCHEMA_PREAMBLE)
    if start == -1:
        return None
    brace = system_prompt.find("{", start)
    if brace == -1:
        return None
    try:
        shape, _ = json.JSONDecoder().raw_decode(system_prompt[brace:])
    except json.JSONDecodeError:
        return None
    return shape


_CHOICE_PATTERN = re.compile(r"EXACTLY one of '([^']+)'")
_RANGE_PATTERN = re.compile(r"<integer (\d+)-(\d+)>")


def _sample(shape: Any) -> Any:
    if isinstance(shape, dict):
        return {key: _sample(value) for key, value in shape.items()}
    if isinstance(shape, list):
        if shape and isinstance(shape[0], dict):
            return [_sample(shape[0]) for _ in range(5)]
        return ["Offline placeholder"] * 3
    if isinstance(shape, str):
        bounds = _RANGE_PATTERN.search(shape)
        if bounds:
            return (int(bounds.group(1)) + int(bounds.group(2))) // 2
        choice = _CHOICE_PATTERN.search(shape)
        if choice:
            return choice.group(1)
        if shape.startswith("<string or null"):
            return None
    return "Offline placeholder"


_CONFIG_OPTION = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Path to the configuration file.")
_REMOTE_OPTION = typer.Option(
    True,
    "--use-remote/--no-use-remote",
    help="Call OpenRouter instead of the offline stub (requires OPENROUTER_API_KEY).",
)


@app.command()
def init(
    config: str = _CONFIG_OPTION,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration template."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    _write_config(config_path, _copy_config_template())
    typer.echo(f"Wrote configuration to {config_path}")


@app.command()
def status(config: str = _CONFIG_OPTION) -> None:
    """Validate configuration and report basic status information."""
    config_path = Path(config)
    config_data = load_config(config_path)

    project = config_data.get("project") or {}
    models_cfg = config_data.get("models") or {}
    paths_cfg = config_data.get("paths") or {}

    typer.echo(f"Loaded configuration from {config_path}")
    typer.echo(f"Project: {project.get('name', 'unnamed')}")
    typer.echo(f"Default model: {models_cfg.get('default', DEFAULT_MODEL)}")
    overrides = models_cfg.get("tasks") or {}
    for task in TaskName:
        if task.value in overrides:
            typer.echo(f"- {task.value}: {overrides[task.value]}")
    typer.echo(f"Logs: {paths_cfg.get('logs') or 'disabled'}")
    has_key = bool(os.getenv("OPENROUTER_API_KEY") or models_cfg.get("api_key"))
    typer.echo(f"API key: {'configured' if has_key else 'missing'}")


@app.command()
def research(
    description: str = typer.Argument(..., help="Free-text business description."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Run market research for a business idea."""
    router = _build_router(Path(config), use_remote)
    _emit(router.dispatch(TaskName.MARKET_RESEARCH, MarketResearchRequest(description)))


@app.command()
def names(
    description: str = typer.Argument(..., help="Free-text business description."),
    market_summary: str = typer.Option("", "--market-summary", "-m", help="Market research summary."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Suggest five business names."""
    router = _build_router(Path(config), use_remote)
    request = BusinessNamesRequest(description, market_research_summary=market_summary)
    _emit(router.dispatch(TaskName.BUSINESS_NAMES, request))


@app.command("entity-type")
def entity_type(
    description: str = typer.Argument(..., help="Free-text business description."),
    name: str = typer.Option("", "--name", "-n", help="Chosen business name."),
    market_summary: str = typer.Option("", "--market-summary", "-m", help="Market research summary."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Recommend a Swedish business entity type."""
    router = _build_router(Path(config), use_remote)
    request = BusinessTypeRequest(description, name, market_research_summary=market_summary)
    _emit(router.dispatch(TaskName.BUSINESS_TYPE, request))


@app.command()
def profile(
    history: Path = typer.Option(..., "--history", "-H", help="JSON file with the conversation ('-' for stdin)."),
    current: Optional[Path] = typer.Option(None, "--current", help="JSON file with the current profile."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Extract a business profile from a conversation."""
    router = _build_router(Path(config), use_remote)
    current_profile = _read_json(current, {})
    if not isinstance(current_profile, dict):
        current_profile = {}
    request = ProfileRequest(_read_history(history), current_profile=current_profile)
    _emit(router.dispatch(TaskName.PROFILE, request))


@app.command()
def tasks(
    profile_path: Path = typer.Option(..., "--profile", "-p", help="JSON file with the business profile."),
    history: Optional[Path] = typer.Option(None, "--history", "-H", help="JSON file with the conversation."),
    current_task: List[str] = typer.Option(None, "--current-task", "-t", help="Title of an active task (repeatable)."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Generate a themed plan of three to five tasks."""
    router = _build_router(Path(config), use_remote)
    profile_data = _read_json(profile_path, {})
    request = TaskPlanRequest(
        profile=profile_data if isinstance(profile_data, dict) else {},
        history=_read_history(history),
        current_tasks=list(current_task or []),
    )
    _emit(router.dispatch(TaskName.TASK_PLAN, request))


@app.command()
def onboard(
    message: str = typer.Argument(..., help="Latest user message."),
    history: Optional[Path] = typer.Option(None, "--history", "-H", help="JSON file with the conversation."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Send one onboarding discovery turn."""
    router = _build_router(Path(config), use_remote)
    _emit(router.dispatch(TaskName.ONBOARDING, OnboardingRequest(message, history=_read_history(history))))


@app.command()
def chat(
    message: str = typer.Argument(..., help="Latest user message."),
    profile_path: Path = typer.Option(..., "--profile", "-p", help="JSON file with the business profile."),
    history: Optional[Path] = typer.Option(None, "--history", "-H", help="JSON file with the conversation."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Ask the business strategist for advice on the current profile."""
    router = _build_router(Path(config), use_remote)
    profile_data = _read_json(profile_path, {})
    request = ChatRequest(
        message,
        profile=profile_data if isinstance(profile_data, dict) else {},
        history=_read_history(history),
    )
    _emit(router.dispatch(TaskName.CHAT, request))


@app.command()
def run(
    task: str = typer.Argument(..., help="Task name, e.g. market_research."),
    payload: Path = typer.Option(..., "--payload", "-P", help="JSON request payload ('-' for stdin)."),
    config: str = _CONFIG_OPTION,
    use_remote: bool = _REMOTE_OPTION,
) -> None:
    """Dispatch any task with a raw JSON payload."""
    router = _build_router(Path(config), use_remote)
    data = _read_json(payload, {})
    try:
        outcome = router.dispatch(task, data)
    except (KeyError, ValueError) as error:
        message = error.args[0] if isinstance(error, KeyError) and error.args else str(error)
        typer.echo(message)
        raise typer.Exit(code=1) from error
    _emit(outcome)


if __name__ == "__main__":
    app()
