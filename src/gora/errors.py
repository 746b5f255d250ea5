"""Exceptions raised inside the orchestration core.

None of these cross a delegate boundary: delegates and meta-tools turn them
into plain result strings.
"""

from __future__ import annotations


class GoraError(Exception):
    """Base class for gora errors."""


class ConfigError(GoraError):
    """Unknown provider, role or malformed project configuration."""


class ProviderError(GoraError):
    """A completion endpoint failed (network, auth, rate limit, bad response)."""

    def __init__(self, provider: str, message: str, *, retryable: bool = False) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.retryable = retryable
