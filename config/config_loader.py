"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DEFAULT_CONTRIBUTE = (
    "Design request:\n{request}\n\n"
    "Discussion so far:\n{transcript}\n\n"
    "Give your contribution for turn {turn} as the {role}."
)
_DEFAULT_REFINE = (
    "Design request:\n{request}\n\n"
    "The {last_role} just said:\n{last_content}\n\n"
    "Discussion so far:\n{transcript}\n\n"
    "Respond as the {role} for turn {turn}: refine your part where it conflicts or is missing."
)
_DEFAULT_PLAN = (
    "User message:\n{message}\n\n"
    "Has schema: {has_schema}. Has layout: {has_layout}. Readiness: {readiness}%.\n"
    "Plan the next agent actions."
)
_DEFAULT_FIX = (
    "Original request:\n{original_prompt}\n\n"
    "Error ({category}): {error}\nRoot cause: {root_cause}\nSuggestion: {suggestion}\n\n"
    "{context}\n\n"
    "Strategy: {strategy}. {instruction}"
)


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    temperature: float = 0.4


@dataclass
class PromptsConfig:
    contribute: str = _DEFAULT_CONTRIBUTE
    refine: str = _DEFAULT_REFINE
    plan: str = _DEFAULT_PLAN
    fix: str = _DEFAULT_FIX
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    max_turns: int
    min_turns: int
    confidence_threshold: float
    output_dir: Path
    default_provider: str
    max_iterations: int = 5


@dataclass
class RetryConfig:
    max_retries: int = 5
    incremental_threshold: int = 2
    same_error_threshold: int = 2
    min_code_length_for_incremental: int = 50
    per_category_limits: dict[str, int] = field(default_factory=dict)
    fatal_categories: list[str] = field(default_factory=list)


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    roles: dict[str, str] = field(default_factory=dict)     # role value -> model name
    retry: RetryConfig = field(default_factory=RetryConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)

    def provider_for(self, role: str) -> str:
        """Model name bound to a role, falling back to the default provider."""
        return self.roles.get(role, self.defaults.default_provider)


def _parse_model(name: str, raw: dict) -> ModelConfig:
    return ModelConfig(
        name=name,
        sdk=raw["sdk"],
        model=raw["model"],
        api_key_env=raw["api_key_env"],
        timeout_sec=int(raw["timeout_sec"]),
        max_tokens=int(raw["max_tokens"]),
        base_url=raw.get("base_url"),
        temperature=float(raw.get("temperature", 0.4)),
    )


def _has_key(model: ModelConfig) -> bool:
    if os.environ.get(model.api_key_env, "").strip():
        logger.info("Provider available: %s", model.name)
        return True
    logger.info("Provider skipped (no API key): %s, set %s in .env", model.name, model.api_key_env)
    return False


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Read settings.yaml (or `settings_path`) into an AppConfig.

    A missing file raises FileNotFoundError. Missing API keys are only logged;
    the models that have one are listed in `available_providers`.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        max_turns=int(defaults_raw["max_turns"]),
        min_turns=int(defaults_raw["min_turns"]),
        confidence_threshold=float(defaults_raw["confidence_threshold"]),
        output_dir=Path(defaults_raw["output_dir"]),
        default_provider=str(defaults_raw["default_provider"]),
        max_iterations=int(defaults_raw.get("max_iterations", 5)),
    )
    if defaults.min_turns > defaults.max_turns:
        logger.warning(
            "min_turns (%d) exceeds max_turns (%d); consensus can only be forced",
            defaults.min_turns, defaults.max_turns,
        )

    prompts_raw = raw.get("prompts") or {}
    personas_raw = raw.get("personas") or {}
    prompts = PromptsConfig(
        contribute=prompts_raw.get("contribute", _DEFAULT_CONTRIBUTE),
        refine=prompts_raw.get("refine", _DEFAULT_REFINE),
        plan=prompts_raw.get("plan", _DEFAULT_PLAN),
        fix=prompts_raw.get("fix", _DEFAULT_FIX),
        personas={str(k): str(v) for k, v in personas_raw.items()},
    )

    retry_raw = raw.get("retry") or {}
    retry = RetryConfig(
        max_retries=int(retry_raw.get("max_retries", 5)),
        incremental_threshold=int(retry_raw.get("incremental_threshold", 2)),
        same_error_threshold=int(retry_raw.get("same_error_threshold", 2)),
        min_code_length_for_incremental=int(retry_raw.get("min_code_length_for_incremental", 50)),
        per_category_limits={str(k): int(v) for k, v in (retry_raw.get("per_category_limits") or {}).items()},
        fatal_categories=[str(c) for c in retry_raw.get("fatal_categories") or []],
    )

    inbox_raw = raw.get("inbox") or {}
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    roles = {str(k): str(v) for k, v in (raw.get("roles") or {}).items()}

    models = {name: _parse_model(name, model_raw) for name, model_raw in raw["models"].items()}
    available_providers = {name for name, model in models.items() if _has_key(model)}

    unknown = {m for m in roles.values() if m not in models}
    if unknown:
        logger.warning("Roles bound to unknown models: %s", ", ".join(sorted(unknown)))

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        roles=roles,
        retry=retry,
        inbox=inbox,
        available_providers=available_providers,
    )
