"""Message-structured protocol (OpenAI Chat Completions API).

Tool calls arrive as a ``tool_calls`` list on the assistant message with
JSON-encoded ``arguments``. Each result is its own ``role: tool`` message
keyed by ``tool_call_id``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, InternalServerError, RateLimitError

from gora.config import ModelConfig
from gora.models.turns import TextPart, ToolCallPart, ToolResultPart, Turn
from gora.providers.base import ProviderAdapter
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)


class OpenAIAdapter(ProviderAdapter):
    provider = "openai"

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
            client = AsyncOpenAI(
                api_key=api_key or None,
                base_url=config.base_url or None,
                timeout=timeout,
            )
        self.client = client

    def encode_tools(self, tools: list[ToolSchema]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in tools
        ]

    def encode_tool_results(self, results: list[ToolResultPart]) -> list[dict[str, Any]]:
        return [{"role": "tool", "tool_call_id": r.call_id, "content": r.content} for r in results]

    def _encode_assistant(self, turn: Turn) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": turn.text or None}
        calls = turn.tool_calls
        if calls:
            message["tool_calls"] = [
                {
                    "id": c.id,
                    "type": "function",
                    "function": {"name": c.name, "arguments": json.dumps(c.input)},
                }
                for c in calls
            ]
        return message

    def encode_outbound_turn(
        self, conversation: list[Turn], tools: list[ToolSchema], system: str = ""
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        for turn in self.sendable(conversation):
            if turn.results:
                messages.extend(self.encode_tool_results(turn.results))
            elif turn.role == "user":
                messages.append({"role": "user", "content": turn.text})
            else:
                messages.append(self._encode_assistant(turn))

        request: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            request["tools"] = self.encode_tools(tools)
        if self.config.temperature is not None:
            request["temperature"] = self.config.temperature
        if self.config.max_tokens is not None:
            request["max_completion_tokens"] = self.config.max_tokens
        return request

    def decode_inbound_response(self, wire: dict[str, Any]) -> Turn:
        choices = wire.get("choices") or []
        if not choices:
            logger.warning("OpenAI response had no choices")
            return Turn(role="assistant")
        message = choices[0].get("message") or {}

        parts: list[TextPart | ToolCallPart] = []
        if message.get("content"):
            parts.append(TextPart(text=message["content"]))
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            name = function.get("name", "")
            raw = function.get("arguments") or "{}"
            try:
                args = json.loads(raw)
            except json.JSONDecodeError as e:
                parts.append(ToolCallPart(id=call["id"], name=name, parse_error=f"invalid JSON ({e})"))
                continue
            if not isinstance(args, dict):
                parts.append(
                    ToolCallPart(id=call["id"], name=name, parse_error="arguments must be a JSON object")
                )
                continue
            parts.append(ToolCallPart(id=call["id"], name=name, input=args))
        return Turn(role="assistant", parts=parts)

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        response = await self.client.chat.completions.create(**request)
        return response.model_dump()

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(
            error, (APIConnectionError, APITimeoutError, InternalServerError, RateLimitError)
        )
