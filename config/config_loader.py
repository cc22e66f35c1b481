"""Load settings.yaml into typed dataclasses. Reports which providers have API keys."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.models import DiscussionMode

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

MIN_FIXED_TURNS = 1
DEFAULT_MAX_ATTEMPTS = 45
DEFAULT_RETRY_DELAY_SEC = 2.0


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    thinking_budget: int | None = None


@dataclass
class PromptsConfig:
    opening: str
    critic_reply: str
    analyst_reply: str
    synthesis: str
    notepad_instruction: str
    ai_driven_instruction: str
    agreement_request: str
    image_instruction: str = ""
    empty_notepad: str = "The notepad is currently empty."
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class RetryConfig:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_sec: float = DEFAULT_RETRY_DELAY_SEC


@dataclass
class DefaultsConfig:
    mode: DiscussionMode
    fixed_turns: int
    analyst: str
    critic: str
    output_dir: Path
    thinking: bool = True


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    retry: RetryConfig = field(default_factory=RetryConfig)
    available_providers: set[str] = field(default_factory=set)


def parse_mode(value: str) -> DiscussionMode:
    """Map a settings/CLI string to a DiscussionMode. Raises ValueError on anything else."""
    try:
        return DiscussionMode(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in DiscussionMode)
        raise ValueError(f"Unknown discussion mode {value!r} (expected one of: {allowed})") from None


def validate_fixed_turns(turns: int) -> int:
    if turns < MIN_FIXED_TURNS:
        raise ValueError(f"fixed_turns must be >= {MIN_FIXED_TURNS}, got {turns}")
    return turns


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError
    for an unknown mode or a fixed turn count below 1.
    Missing API keys are logged, not raised: a session only fails when a
    participant without a key is actually called.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        mode=parse_mode(defaults_raw["mode"]),
        fixed_turns=validate_fixed_turns(int(defaults_raw["fixed_turns"])),
        analyst=str(defaults_raw["analyst"]),
        critic=str(defaults_raw["critic"]),
        output_dir=Path(defaults_raw["output_dir"]),
        thinking=bool(defaults_raw.get("thinking", True)),
    )

    retry_raw = raw.get("retry", {})
    retry = RetryConfig(
        max_attempts=int(retry_raw.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        delay_sec=float(retry_raw.get("delay_sec", DEFAULT_RETRY_DELAY_SEC)),
    )

    prompts_raw = raw["prompts"]
    personas_raw = raw.get("personas", {})
    prompts = PromptsConfig(
        opening=prompts_raw["opening"],
        critic_reply=prompts_raw["critic_reply"],
        analyst_reply=prompts_raw["analyst_reply"],
        synthesis=prompts_raw["synthesis"],
        notepad_instruction=prompts_raw["notepad_instruction"],
        ai_driven_instruction=prompts_raw["ai_driven_instruction"],
        agreement_request=prompts_raw["agreement_request"],
        image_instruction=prompts_raw.get("image_instruction", ""),
        empty_notepad=prompts_raw.get("empty_notepad", "The notepad is currently empty."),
        personas={k: str(v) for k, v in personas_raw.items()},
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for model_name, model_raw in raw["models"].items():
        thinking_budget = model_raw.get("thinking_budget")
        models[model_name] = ModelConfig(
            name=model_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            thinking_budget=int(thinking_budget) if thinking_budget is not None else None,
        )

        if os.environ.get(model_raw["api_key_env"], "").strip():
            available_providers.add(model_name)
            logger.info("Provider available: %s", model_name)
        else:
            logger.info(
                "Provider has no API key: %s (set %s in .env)",
                model_name,
                model_raw["api_key_env"],
            )

    for role in ("analyst", "critic"):
        chosen = getattr(defaults, role)
        if chosen not in models:
            raise ValueError(f"defaults.{role} refers to unknown model {chosen!r}")

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        retry=retry,
        available_providers=available_providers,
    )
