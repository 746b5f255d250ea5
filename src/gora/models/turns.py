"""Provider-neutral conversation types for the tool-call loop."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    input: dict = Field(default_factory=dict)
    # Set by the adapter when the wire arguments could not be decoded
    parse_error: str | None = None


class ToolResultPart(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    call_id: str
    name: str
    content: str
    is_error: bool = False


ToolResult = ToolResultPart

Part = Union[TextPart, ToolCallPart, ToolResultPart]


class Turn(BaseModel):
    role: Literal["user", "assistant"]
    parts: list[Part] = Field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role="user", parts=[TextPart(text=text)])

    @classmethod
    def assistant(cls, *parts: Part) -> Turn:
        return cls(role="assistant", parts=list(parts))

    @classmethod
    def tool_results(cls, results: list[ToolResultPart]) -> Turn:
        return cls(role="user", parts=list(results))

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]

    @property
    def has_tool_calls(self) -> bool:
        return any(isinstance(p, ToolCallPart) for p in self.parts)

    @property
    def is_empty(self) -> bool:
        """No text, calls or results: nothing a provider would accept as a message."""
        return not self.text and not self.has_tool_calls and not self.results


class LoopResult(BaseModel):
    output: str
    iterations: int
    tool_calls: int
    exhausted: bool = False
