"""Agent roles: each fixes a tool set, an iteration cap and a prompt.

Only MAIN advertises meta-tools, so a spawned agent can never spawn another
one and delegation stops one level below the main conversation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AgentRole(str, Enum):
    MAIN = "main"
    ORACLE = "oracle"
    SEARCH = "search"
    LIBRARIAN = "librarian"
    SUBAGENT = "subagent"


class LibrarianRequestType(str, Enum):
    CONCEPTUAL = "conceptual"
    IMPLEMENTATION = "implementation"
    EXAMPLES = "examples"
    TROUBLESHOOTING = "troubleshooting"

    @classmethod
    def parse(cls, value: str | None) -> LibrarianRequestType:
        try:
            return cls((value or cls.CONCEPTUAL.value).lower())
        except ValueError:
            return cls.CONCEPTUAL


READ_ONLY_TOOLS = frozenset({"read_file", "list_files", "code_search"})
WRITE_TOOLS = frozenset({"edit_file", "bash"})
VALIDATION_TOOLS = frozenset({"feedback_loop"})
META_TOOLS = frozenset({"oracle", "subagent", "search_agent", "parallel_subagents", "librarian"})


@dataclass(frozen=True)
class RoleSpec:
    role: AgentRole
    label: str
    tools: frozenset[str]
    iteration_cap: int | None
    prompt: str
    empty_response: str = ""
    # Run a turn's tool calls concurrently (results still keep call order)
    concurrent_tools: bool = False

    @property
    def exhausted_message(self) -> str:
        return f"{self.label} reached maximum iterations"


ROLE_SPECS: dict[AgentRole, RoleSpec] = {
    AgentRole.MAIN: RoleSpec(
        role=AgentRole.MAIN,
        label="Agent",
        tools=READ_ONLY_TOOLS | WRITE_TOOLS | META_TOOLS | VALIDATION_TOOLS,
        iteration_cap=None,
        prompt="main_system",
    ),
    AgentRole.ORACLE: RoleSpec(
        role=AgentRole.ORACLE,
        label="Oracle",
        tools=READ_ONLY_TOOLS,
        iteration_cap=None,
        prompt="oracle_system",
        empty_response="No response from oracle",
    ),
    AgentRole.SEARCH: RoleSpec(
        role=AgentRole.SEARCH,
        label="Search",
        tools=READ_ONLY_TOOLS,
        iteration_cap=10,
        prompt="search_system",
        empty_response="Search completed",
        concurrent_tools=True,
    ),
    AgentRole.LIBRARIAN: RoleSpec(
        role=AgentRole.LIBRARIAN,
        label="Librarian",
        tools=READ_ONLY_TOOLS,
        iteration_cap=15,
        prompt="librarian_system",
        empty_response="Research completed",
    ),
    AgentRole.SUBAGENT: RoleSpec(
        role=AgentRole.SUBAGENT,
        label="Subagent",
        tools=READ_ONLY_TOOLS | WRITE_TOOLS | VALIDATION_TOOLS,
        iteration_cap=20,
        prompt="subagent_system",
        empty_response="Task completed",
    ),
}


def role_spec(role: AgentRole) -> RoleSpec:
    return ROLE_SPECS[role]
