from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings

from gora.agents.roles import AgentRole
from gora.errors import ConfigError

logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "openai", "google")


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""

    anthropic_base_url: str = ""
    openai_base_url: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    max_tokens: int = 8096
    request_timeout: float = 300.0
    provider_max_retries: int = 3

    # Output budgeting: rough estimate, 1 token ~ 4 characters
    chars_per_token: int = 4

    # Tool limits
    bash_timeout_ms: int = 30_000
    bash_max_output_chars: int = 100_000
    feedback_output_chars: int = 2000

    workdir: str = "."


settings = Settings()


@dataclass
class ModelConfig:
    model: str = ""
    provider: str = "anthropic"
    temperature: float | None = None
    max_tokens: int | None = None
    base_url: str = ""


DEFAULT_ROLE_MODELS: dict[AgentRole, dict[str, str]] = {
    AgentRole.MAIN: {"model": "claude-sonnet-4-20250514", "provider": "anthropic"},
    AgentRole.ORACLE: {"model": "o3-mini", "provider": "openai"},
    AgentRole.SEARCH: {"model": "gemini-2.0-flash", "provider": "google"},
}

DEFAULT_FEEDBACK_LOOPS = {"typescript": True, "tests": True, "lint": True}

_project_config_cache: dict | None = None


def _load_project_yaml() -> dict:
    global _project_config_cache
    if _project_config_cache is not None:
        return _project_config_cache

    config_path = os.environ.get("GORA_CONFIG_PATH", "gora.yaml")
    path = Path(config_path)
    if not path.is_file():
        _project_config_cache = {}
        return _project_config_cache

    import yaml

    with open(path) as f:
        _project_config_cache = yaml.safe_load(f) or {}
    return _project_config_cache


def api_key_for(provider: str, s: Settings) -> str:
    return {
        "anthropic": s.anthropic_api_key,
        "openai": s.openai_api_key,
        "google": s.google_api_key,
    }.get(provider, "")


def get_model_config(role: AgentRole = AgentRole.MAIN, s: Settings | None = None) -> ModelConfig:
    """Get model config for a role, merging built-in defaults, the ``default``
    section of gora.yaml and the role's ``agents`` override.

    Roles without their own entry inherit the main model.
    """
    s = s or settings
    data = _load_project_yaml()

    main_defaults = DEFAULT_ROLE_MODELS[AgentRole.MAIN]
    builtin = DEFAULT_ROLE_MODELS.get(role, main_defaults)
    default = data.get("default", {})
    merged = {
        "model": builtin["model"],
        "provider": builtin["provider"],
        "temperature": default.get("temperature"),
        "max_tokens": default.get("max_tokens"),
        "base_url": default.get("base_url", ""),
    }
    if role == AgentRole.MAIN or role not in DEFAULT_ROLE_MODELS:
        merged["model"] = default.get("model", merged["model"])
        merged["provider"] = default.get("provider", merged["provider"])

    agents = data.get("agents", {})
    override = agents.get(role.value, {}) or {}
    for key, value in override.items():
        if key in merged:
            merged[key] = value

    if merged["provider"] not in PROVIDERS:
        raise ConfigError(f"Unknown provider '{merged['provider']}' for role '{role.value}'")

    return ModelConfig(
        model=merged["model"],
        provider=merged["provider"],
        temperature=merged["temperature"],
        max_tokens=merged["max_tokens"],
        base_url=merged["base_url"],
    )


def resolve_role_models(s: Settings | None = None) -> dict[AgentRole, ModelConfig]:
    """Resolve every role's model, falling back to the main model on the
    anthropic provider when a role's provider has no API key configured."""
    s = s or settings
    main = get_model_config(AgentRole.MAIN, s)
    resolved: dict[AgentRole, ModelConfig] = {}
    for role in AgentRole:
        cfg = get_model_config(role, s)
        if role != AgentRole.MAIN and not api_key_for(cfg.provider, s) and cfg.provider != main.provider:
            logger.warning(
                "%s key not set, %s agent falls back to %s (%s)",
                cfg.provider, role.value, main.model, main.provider,
            )
            cfg = ModelConfig(
                model=main.model,
                provider=main.provider,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                base_url=main.base_url,
            )
        resolved[role] = cfg
    return resolved


def get_feedback_loops() -> dict[str, bool]:
    """Return the enable/disable map for the three feedback checks."""
    data = _load_project_yaml()
    section = data.get("feedback_loops", {}) or {}
    return {name: bool(section.get(name, default)) for name, default in DEFAULT_FEEDBACK_LOOPS.items()}
