"""Configuration loader for TrendForge.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import ConfigError
from src.core.models import Period, ScoutOptions


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SystemConfig(_Frozen):
    dry_run: bool = False
    skip_deploy: bool = False
    skip_announce: bool = False
    state_dir: str = "logs"
    log_dir: str = "logs"
    workspace_dir: str = "workspace"


class TimeBudgetConfig(_Frozen):
    """Per-phase wall clock budgets, in seconds."""
    trend_scout: float = 15 * 60
    idea_generator: float = 20 * 60
    idea_judge: float = 10 * 60
    researcher: float = 30 * 60
    implementer: float = 8 * 60 * 60
    deployer: float = 20 * 60
    announcer: float = 10 * 60


class ScoutConfig(_Frozen):
    period: Period = "daily"
    languages: list[str] = Field(default_factory=lambda: ["TypeScript", "JavaScript"])
    min_stars: int = 100
    max_age_days: Optional[int] = None
    topics: list[str] = Field(default_factory=list)

    def to_options(self) -> ScoutOptions:
        return ScoutOptions(
            period=self.period,
            languages=list(self.languages),
            min_stars=self.min_stars,
            max_age_days=self.max_age_days,
            topics=list(self.topics),
        )


class JudgeConfig(_Frozen):
    min_differentiation_score: int = 50
    min_strong_axes: int = 2
    max_rounds: int = Field(default=2, ge=1, le=2)


class LLMConfig(_Frozen):
    provider: str = "openrouter"
    base_url: str = "https://openrouter.ai/api/v1"
    default_temperature: float = 0.7
    default_max_tokens: int = 4096
    timeout_seconds: int = 120
    provider_retries: int = 2
    provider_backoff_seconds: float = 2.0
    fallback_models: list[str] = Field(default_factory=list)
    model_failure_threshold: int = 2
    model_cooldown_seconds: int = 90


class GitHubConfig(_Frozen):
    api_url: str = "https://api.github.com"
    token: Optional[str] = None
    username: Optional[str] = None
    push_enabled: bool = False
    license: str = "MIT"
    timeout_seconds: int = 30


class TwitterConfig(_Frozen):
    api_url: str = "https://api.twitter.com/2"
    bearer_token: Optional[str] = None
    username: Optional[str] = None
    timeout_seconds: int = 30


class NpmConfig(_Frozen):
    registry_url: str = "https://registry.npmjs.org"
    timeout_seconds: int = 30


class ImplementerConfig(_Frozen):
    agent_command: list[str] = Field(default_factory=lambda: ["claude", "-p"])
    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    feature_timeout_seconds: int = 45 * 60
    build_command: list[str] = Field(default_factory=lambda: ["npm", "run", "build"])
    test_command: list[str] = Field(default_factory=lambda: ["npm", "test"])
    max_fix_rounds: int = 3


class LoggingConfig(_Frozen):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(_Frozen):
    system: SystemConfig = Field(default_factory=SystemConfig)
    time_budgets: TimeBudgetConfig = Field(default_factory=TimeBudgetConfig)
    scout: ScoutConfig = Field(default_factory=ScoutConfig)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    twitter: TwitterConfig = Field(default_factory=TwitterConfig)
    npm: NpmConfig = Field(default_factory=NpmConfig)
    implementer: ImplementerConfig = Field(default_factory=ImplementerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def deploy_enabled(self) -> bool:
        return not (self.system.dry_run or self.system.skip_deploy)

    @property
    def announce_enabled(self) -> bool:
        return not (self.system.dry_run or self.system.skip_announce)


# ---------------------------------------------------------------------------
# Model registry (models.yaml)
# ---------------------------------------------------------------------------

class ModelRegistry(BaseModel):
    """Maps oracle roles to OpenRouter model IDs."""
    roles: dict[str, str] = Field(default_factory=dict)
    fallbacks: dict[str, list[str]] = Field(default_factory=dict)

    def get_model(self, role: str) -> str:
        if role not in self.roles:
            raise ConfigError(f"No model configured for role '{role}'. Update config/models.yaml.")
        return self.roles[role]

    def get_fallback_models(self, role: str) -> list[str]:
        return list(self.fallbacks.get(role, []))


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in _TRUTHY


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, dict[str, Any]] = {
        "system": {},
        "github": {},
        "twitter": {},
        "implementer": {},
        "logging": {},
    }

    dry_run = _env_flag("DRY_RUN")
    if dry_run is not None:
        overrides["system"]["dry_run"] = dry_run
    for name in ("SKIP_GITHUB", "SKIP_DEPLOY"):
        if _env_flag(name):
            overrides["system"]["skip_deploy"] = True
    for name in ("SKIP_TWITTER", "SKIP_ANNOUNCE"):
        if _env_flag(name):
            overrides["system"]["skip_announce"] = True

    if os.getenv("LOG_LEVEL"):
        overrides["logging"]["level"] = os.environ["LOG_LEVEL"].upper()
    if os.getenv("GITHUB_TOKEN"):
        overrides["github"]["token"] = os.environ["GITHUB_TOKEN"]
    if os.getenv("GITHUB_USERNAME"):
        overrides["github"]["username"] = os.environ["GITHUB_USERNAME"]
    if os.getenv("TWITTER_BEARER_TOKEN"):
        overrides["twitter"]["bearer_token"] = os.environ["TWITTER_BEARER_TOKEN"]
    if os.getenv("CODING_AGENT_COMMAND"):
        overrides["implementer"]["agent_command"] = os.environ["CODING_AGENT_COMMAND"].split()

    return {section: values for section, values in overrides.items() if values}


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> env vars (DRY_RUN, GITHUB_TOKEN, etc.)
    """
    if config_dir is None:
        config_dir = Path(__file__).parent.parent.parent / "config"

    # Base config
    merged = _load_yaml(config_dir / "default.yaml")

    # Environment overlay
    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    # Environment variable overrides
    merged = _deep_merge(merged, _env_overrides())

    try:
        return AppConfig(**merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration in {config_dir}: {exc}") from exc


def load_model_registry(config_dir: Optional[Path] = None) -> ModelRegistry:
    """Load the model registry from models.yaml."""
    if config_dir is None:
        config_dir = Path(__file__).parent.parent.parent / "config"

    data = _load_yaml(config_dir / "models.yaml")
    return ModelRegistry(**data)


def validate_for_run(config: AppConfig) -> None:
    """Fail fast on settings a live run cannot do without.

    GitHub credentials are only needed when the deploy phase will run.
    """
    if not config.deploy_enabled:
        return
    missing = []
    if not config.github.token:
        missing.append("GITHUB_TOKEN")
    if not config.github.username:
        missing.append("GITHUB_USERNAME")
    if missing:
        raise ConfigError(
            f"Missing required settings: {', '.join(missing)} "
            "(set them or run with --dry-run / --skip-deploy)"
        )


# ---------------------------------------------------------------------------
# Prompt loader
# ---------------------------------------------------------------------------

class PromptLoader:
    """Loads prompt templates from config/prompts/ directory.

    Falls back to the built-in default if the file doesn't exist, so prompts
    can be tuned without code changes.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        if prompts_dir is None:
            prompts_dir = Path(__file__).parent.parent.parent / "config" / "prompts"
        self.prompts_dir = prompts_dir

    def load(self, name: str, default: str = "") -> str:
        """Load a prompt template by filename.

        Args:
            name: Filename within config/prompts/ (e.g. "judge_system.txt").
            default: Fallback text if file doesn't exist.

        Returns:
            Prompt text (stripped of leading/trailing whitespace).
        """
        path = self.prompts_dir / name
        if path.exists():
            return path.read_text().strip()
        return default
