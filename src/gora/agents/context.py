from __future__ import annotations

from dataclasses import dataclass, field

from gora.agents.roles import AgentRole, role_spec
from gora.models.turns import Turn
from gora.tools import ToolRegistry, ToolSchema


@dataclass
class AgentContext:
    """State owned by one running agent; dropped when its loop returns.

    The registry is filtered down to the role's tool set when the context is
    created and is not exposed for registration afterwards.
    """

    role: AgentRole
    registry: ToolRegistry
    iteration_cap: int | None
    conversation: list[Turn] = field(default_factory=list)
    iteration_count: int = 0

    @classmethod
    def create(cls, role: AgentRole, tools: ToolRegistry, task: str | None = None) -> AgentContext:
        spec = role_spec(role)
        ctx = cls(
            role=role,
            registry=tools.subset(spec.tools),
            iteration_cap=spec.iteration_cap,
        )
        if task is not None:
            ctx.conversation.append(Turn.user(task))
        return ctx

    @property
    def tool_names(self) -> frozenset[str]:
        return frozenset(self.registry.names())

    def advertised_tools(self) -> list[ToolSchema]:
        return self.registry.schemas()

    @property
    def exhausted(self) -> bool:
        return self.iteration_cap is not None and self.iteration_count >= self.iteration_cap
