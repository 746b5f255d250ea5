"""Loop events and the observers that consume them.

The core publishes events here instead of printing; rendering is left to
whichever observer the caller plugs in.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from gora.agents.roles import AgentRole


class LoopObserver(Protocol):
    def on_iteration(self, role: AgentRole, iteration: int, cap: int | None) -> None: ...
    def on_thinking(self, role: AgentRole, text: str) -> None: ...
    def on_tool_call(self, role: AgentRole, name: str, args: dict[str, Any]) -> None: ...
    def on_tool_result(self, role: AgentRole, name: str, result: str, is_error: bool) -> None: ...
    def on_finish(self, role: AgentRole, text: str, iterations: int, tool_calls: int, reason: str) -> None: ...


class NullObserver:
    def on_iteration(self, role: AgentRole, iteration: int, cap: int | None) -> None: ...
    def on_thinking(self, role: AgentRole, text: str) -> None: ...
    def on_tool_call(self, role: AgentRole, name: str, args: dict[str, Any]) -> None: ...
    def on_tool_result(self, role: AgentRole, name: str, result: str, is_error: bool) -> None: ...
    def on_finish(self, role: AgentRole, text: str, iterations: int, tool_calls: int, reason: str) -> None: ...


class CompositeObserver:
    """Forwards all loop events to multiple delegates."""

    def __init__(self, observers: Sequence[Any]) -> None:
        self._observers = observers

    def on_iteration(self, role: AgentRole, iteration: int, cap: int | None) -> None:
        for ob in self._observers:
            ob.on_iteration(role, iteration, cap)

    def on_thinking(self, role: AgentRole, text: str) -> None:
        for ob in self._observers:
            ob.on_thinking(role, text)

    def on_tool_call(self, role: AgentRole, name: str, args: dict[str, Any]) -> None:
        for ob in self._observers:
            ob.on_tool_call(role, name, args)

    def on_tool_result(self, role: AgentRole, name: str, result: str, is_error: bool) -> None:
        for ob in self._observers:
            ob.on_tool_result(role, name, result, is_error)

    def on_finish(self, role: AgentRole, text: str, iterations: int, tool_calls: int, reason: str) -> None:
        for ob in self._observers:
            ob.on_finish(role, text, iterations, tool_calls, reason)
