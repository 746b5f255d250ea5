"""Tool plugin system for the tool-call loop."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Union

from gora.models.turns import ToolCallPart, ToolResultPart

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Union[str, Awaitable[str]]]


@dataclass(frozen=True)
class ToolSchema:
    """What a completion endpoint is told about a tool."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    execute: ToolHandler

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(self.name, self.description, self.parameters)


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        self.register_many(tools)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def register_many(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool:
        return self._tools[name]

    def names(self) -> list[str]:
        return list(self._tools)

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def subset(self, names: Iterable[str]) -> ToolRegistry:
        """Build a new registry holding only the named tools that exist here."""
        allowed = set(names)
        return ToolRegistry(t for t in self._tools.values() if t.name in allowed)

    def schemas(self) -> list[ToolSchema]:
        return [tool.schema for tool in self._tools.values()]

    async def execute(self, name: str, args: dict[str, Any]) -> str:
        """Run a tool and return its output; failures come back as text."""
        tool = self._tools.get(name)
        if tool is None:
            return f"Unknown tool: {name}"
        try:
            result = tool.execute(args)
            if inspect.isawaitable(result):
                result = await result
            return result if isinstance(result, str) else str(result)
        except Exception as e:
            logger.error("Tool '%s' failed: %s", name, e)
            return f"Error executing '{name}': {e}"

    async def run_call(self, call: ToolCallPart) -> ToolResultPart:
        """Execute one decoded tool call, answering malformed calls without running them."""
        if call.parse_error is not None:
            return ToolResultPart(
                call_id=call.id,
                name=call.name,
                content=f"Error: could not parse arguments for '{call.name}': {call.parse_error}",
                is_error=True,
            )
        if call.name not in self._tools:
            return ToolResultPart(
                call_id=call.id, name=call.name, content=f"Unknown tool: {call.name}", is_error=True
            )
        content = await self.execute(call.name, call.input)
        is_error = content.startswith("Error")
        return ToolResultPart(call_id=call.id, name=call.name, content=content, is_error=is_error)
