"""Retry policy applied around an adapter's ``complete`` call.

The tool-call loop never retries on its own; the orchestrator decides
whether to wrap an adapter in a ``RetryingAdapter``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from gora.errors import ProviderError
from gora.models.turns import Turn
from gora.providers.base import ProviderAdapter
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.retryable


@dataclass
class RetryPolicy:
    max_retries: int = 3
    min_wait: float = 2.0
    max_wait: float = 30.0

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


class RetryingAdapter:
    """Wraps a ProviderAdapter so transient provider errors are retried."""

    def __init__(self, inner: ProviderAdapter, policy: RetryPolicy) -> None:
        self.inner = inner
        self.policy = policy

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)

    async def complete(self, conversation: list[Turn], tools: list[ToolSchema], system: str = "") -> Turn:
        async for attempt in self.policy.retrying():
            with attempt:
                return await self.inner.complete(conversation, tools, system)


def with_retries(adapter: ProviderAdapter, max_retries: int) -> ProviderAdapter | RetryingAdapter:
    if max_retries <= 0:
        return adapter
    return RetryingAdapter(adapter, RetryPolicy(max_retries=max_retries))
