"""Part-structured protocol (Gemini ``generateContent`` REST API).

Tool calls are ``functionCall`` parts of the first candidate and carry no
call id; this model routinely emits many of them in one turn. Results go
back as ``functionResponse`` parts of one user content, in the same order as
the calls: correlation is positional, so the order of the result batch must
match the order of the calls exactly.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gora.config import ModelConfig
from gora.models.turns import TextPart, ToolCallPart, ToolResultPart, Turn
from gora.providers.base import ProviderAdapter
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
SCHEMA_KEYS = ("description", "enum", "required")
MALFORMED_CALL = "malformed_function_call"


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON schema to Gemini's OpenAPI subset (upper-case type names)."""
    out: dict[str, Any] = {}
    if "type" in schema:
        out["type"] = str(schema["type"]).upper()
    for key in SCHEMA_KEYS:
        if key in schema:
            out[key] = schema[key]
    if "properties" in schema:
        out["properties"] = {k: to_gemini_schema(v) for k, v in schema["properties"].items()}
    if "items" in schema:
        out["items"] = to_gemini_schema(schema["items"])
    return out


class GeminiAdapter(ProviderAdapter):
    provider = "google"

    def __init__(
        self,
        config: ModelConfig,
        api_key: str = "",
        timeout: float = 300.0,
        default_max_tokens: int = 8096,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(config, default_max_tokens)
        self.api_key = api_key
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def encode_tools(self, tools: list[ToolSchema]) -> list[dict[str, Any]]:
        declarations = []
        for t in tools:
            decl: dict[str, Any] = {"name": t.name, "description": t.description}
            if t.parameters.get("properties"):
                decl["parameters"] = to_gemini_schema(t.parameters)
            declarations.append(decl)
        return [{"functionDeclarations": declarations}]

    def encode_tool_results(self, results: list[ToolResultPart]) -> dict[str, Any]:
        return {
            "role": "user",
            "parts": [
                {"functionResponse": {"name": r.name, "response": {"result": r.content}}}
                for r in results
            ],
        }

    def _encode_turn(self, turn: Turn) -> dict[str, Any]:
        if turn.results:
            return self.encode_tool_results(turn.results)
        if turn.role == "user":
            return {"role": "user", "parts": [{"text": turn.text}]}
        parts: list[dict[str, Any]] = []
        for part in turn.parts:
            if isinstance(part, TextPart):
                if part.text:
                    parts.append({"text": part.text})
            elif isinstance(part, ToolCallPart):
                parts.append({"functionCall": {"name": part.name, "args": part.input}})
        return {"role": "model", "parts": parts}

    def encode_outbound_turn(
        self, conversation: list[Turn], tools: list[ToolSchema], system: str = ""
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"contents": [self._encode_turn(t) for t in self.sendable(conversation)]}
        if system:
            request["systemInstruction"] = {"parts": [{"text": system}]}
        if tools:
            request["tools"] = self.encode_tools(tools)
        generation: dict[str, Any] = {"maxOutputTokens": self.max_tokens}
        if self.config.temperature is not None:
            generation["temperature"] = self.config.temperature
        request["generationConfig"] = generation
        return request

    def decode_inbound_response(self, wire: dict[str, Any]) -> Turn:
        candidates = wire.get("candidates") or []
        if not candidates:
            logger.warning("Gemini response had no candidates")
            return Turn(role="assistant")
        candidate = candidates[0]

        if candidate.get("finishReason") == "MALFORMED_FUNCTION_CALL":
            return Turn.assistant(
                ToolCallPart(id="call_0", name=MALFORMED_CALL, parse_error="the function call could not be parsed")
            )

        parts: list[TextPart | ToolCallPart] = []
        calls = 0
        for part in (candidate.get("content") or {}).get("parts") or []:
            if "functionCall" in part and part["functionCall"]:
                fc = part["functionCall"]
                call_id = f"call_{calls}"
                calls += 1
                args = fc.get("args")
                if args is None:
                    args = {}
                if isinstance(args, dict):
                    parts.append(ToolCallPart(id=call_id, name=fc.get("name", ""), input=args))
                else:
                    parts.append(
                        ToolCallPart(id=call_id, name=fc.get("name", ""), parse_error="args must be an object")
                    )
            elif part.get("text"):
                parts.append(TextPart(text=part["text"]))
        return Turn(role="assistant", parts=parts)

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, json=request, headers={"x-goog-api-key": self.api_key})
            response.raise_for_status()
            return response.json()

    def is_retryable(self, error: Exception) -> bool:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code == 429 or error.response.status_code >= 500
        return isinstance(error, httpx.TransportError)
