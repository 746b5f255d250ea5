"""Provider adapter contract.

An adapter translates the neutral conversation (a list of ``Turn``) into one
completion protocol's request shape, and that protocol's response back into
a ``Turn``. Nothing outside ``gora.providers`` looks at provider-specific
field names.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from gora.config import ModelConfig
from gora.errors import ProviderError
from gora.models.turns import ToolResultPart, Turn
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    provider: str = ""

    def __init__(self, config: ModelConfig, default_max_tokens: int = 8096) -> None:
        self.config = config
        self.model = config.model
        self.max_tokens = config.max_tokens or default_max_tokens

    @abstractmethod
    def encode_tools(self, tools: list[ToolSchema]) -> list[dict[str, Any]]: ...

    @abstractmethod
    def encode_tool_results(self, results: list[ToolResultPart]) -> Any:
        """Encode one batch of results as this protocol's follow-up message(s)."""

    @staticmethod
    def sendable(conversation: list[Turn]) -> list[Turn]:
        """Drop empty assistant turns (a model reply with no content) from a request."""
        return [t for t in conversation if not (t.role == "assistant" and t.is_empty)]

    @abstractmethod
    def encode_outbound_turn(
        self, conversation: list[Turn], tools: list[ToolSchema], system: str = ""
    ) -> dict[str, Any]: ...

    @abstractmethod
    def decode_inbound_response(self, wire: dict[str, Any]) -> Turn: ...

    @abstractmethod
    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        """Deliver a wire request and return the raw response as a dict."""

    def is_retryable(self, error: Exception) -> bool:
        return False

    async def complete(self, conversation: list[Turn], tools: list[ToolSchema], system: str = "") -> Turn:
        request = self.encode_outbound_turn(conversation, tools, system)
        try:
            wire = await self.send(request)
        except ProviderError:
            raise
        except Exception as e:
            logger.warning("%s request failed: %s", self.provider, e)
            raise ProviderError(self.provider, str(e), retryable=self.is_retryable(e)) from e
        return self.decode_inbound_response(wire)
