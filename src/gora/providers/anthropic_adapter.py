"""Block-structured protocol (Anthropic Messages API).

Tool calls are ``tool_use`` content blocks of the assistant message. Results
go back as ``tool_result`` blocks in a single user message, each keyed by the
``tool_use_id`` of the call it answers.
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from gora.config import ModelConfig
from gora.models.turns import TextPart, ToolCallPart, ToolResultPart, Turn
from gora.providers.base import ProviderAdapter
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 529)


class AnthropicAdapter(ProviderAdapter):
    provider = "anthropic"

    def __init__(
        self,
        config: ModelConfig,
        api_key: str = "",
        timeout: float = 300.0,
        default_max_tokens: int = 8096,
        client: Any = None,
    ) -> None:
        super().__init__(config, default_max_tokens)
        if client is None:
            client = anthropic.AsyncAnthropic(
                api_key=api_key or None,
                base_url=config.base_url or None,
                timeout=timeout,
            )
        self.client = client

    def encode_tools(self, tools: list[ToolSchema]) -> list[dict[str, Any]]:
        return [
            {"name": t.name, "description": t.description, "input_schema": t.parameters}
            for t in tools
        ]

    def encode_tool_results(self, results: list[ToolResultPart]) -> dict[str, Any]:
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": r.call_id,
                    "content": r.content,
                    **({"is_error": True} if r.is_error else {}),
                }
                for r in results
            ],
        }

    def _encode_turn(self, turn: Turn) -> dict[str, Any]:
        if turn.results:
            return self.encode_tool_results(turn.results)
        if turn.role == "user":
            return {"role": "user", "content": turn.text}
        blocks: list[dict[str, Any]] = []
        for part in turn.parts:
            if isinstance(part, TextPart):
                if part.text:
                    blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, ToolCallPart):
                blocks.append({"type": "tool_use", "id": part.id, "name": part.name, "input": part.input})
        return {"role": "assistant", "content": blocks}

    def encode_outbound_turn(
        self, conversation: list[Turn], tools: list[ToolSchema], system: str = ""
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [self._encode_turn(t) for t in self.sendable(conversation)],
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = self.encode_tools(tools)
        if self.config.temperature is not None:
            request["temperature"] = self.config.temperature
        return request

    def decode_inbound_response(self, wire: dict[str, Any]) -> Turn:
        parts: list[TextPart | ToolCallPart] = []
        for block in wire.get("content") or []:
            kind = block.get("type")
            if kind == "text":
                parts.append(TextPart(text=block.get("text") or ""))
            elif kind == "tool_use":
                raw = block.get("input")
                if isinstance(raw, dict):
                    parts.append(ToolCallPart(id=block["id"], name=block["name"], input=raw))
                else:
                    parts.append(
                        ToolCallPart(
                            id=block["id"],
                            name=block["name"],
                            parse_error=f"expected an object, got {type(raw).__name__}",
                        )
                    )
            # thinking / redacted_thinking blocks carry no content for the loop
        return Turn(role="assistant", parts=parts)

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        response = await self.client.messages.create(**request)
        return response.model_dump()

    def is_retryable(self, error: Exception) -> bool:
        if isinstance(error, (anthropic.RateLimitError, anthropic.InternalServerError)):
            return True
        if isinstance(error, (anthropic.APIConnectionError, anthropic.APITimeoutError)):
            return True
        if isinstance(error, anthropic.APIStatusError):
            return error.status_code in RETRYABLE_STATUS
        return isinstance(error, (ConnectionError, TimeoutError))
