"""Completion-protocol adapters and the factory that picks one per role."""

from __future__ import annotations

from gora.config import ModelConfig, Settings
from gora.errors import ConfigError
from gora.providers.base import ProviderAdapter


def create_adapter(config: ModelConfig, settings: Settings) -> ProviderAdapter:
    """Build the adapter for a model config's provider."""
    common = {"timeout": settings.request_timeout, "default_max_tokens": settings.max_tokens}
    if config.provider == "anthropic":
        from gora.providers.anthropic_adapter import AnthropicAdapter

        if not config.base_url and settings.anthropic_base_url:
            config.base_url = settings.anthropic_base_url
        return AnthropicAdapter(config, api_key=settings.anthropic_api_key, **common)
    if config.provider == "openai":
        from gora.providers.openai_adapter import OpenAIAdapter

        if not config.base_url and settings.openai_base_url:
            config.base_url = settings.openai_base_url
        return OpenAIAdapter(config, api_key=settings.openai_api_key, **common)
    if config.provider == "google":
        from gora.providers.gemini_adapter import GeminiAdapter

        if not config.base_url:
            config.base_url = settings.gemini_base_url
        return GeminiAdapter(config, api_key=settings.google_api_key, **common)
    raise ConfigError(f"Unknown provider '{config.provider}'")


__all__ = ["ProviderAdapter", "create_adapter"]
