"""Read-only delegate agents: Oracle, Search and Librarian.

Each consultation runs a fresh loop in its own context and returns only the
final text. Provider failures come back as "<Label> error: ..." strings so
the calling loop keeps going.
"""

from __future__ import annotations

import datetime
import logging

from gora.agents.context import AgentContext
from gora.agents.loop import CompletionClient, ToolCallLoop
from gora.agents.observer import LoopObserver, NullObserver
from gora.agents.roles import AgentRole, LibrarianRequestType, role_spec
from gora.prompts.prompt_layer import load_prompt, render_prompt
from gora.tools import ToolRegistry

logger = logging.getLogger(__name__)


class Delegate:
    role: AgentRole

    def __init__(
        self,
        adapter: CompletionClient,
        tools: ToolRegistry,
        observer: LoopObserver | None = None,
    ) -> None:
        self.adapter = adapter
        self.tools = tools
        self.observer: LoopObserver = observer or NullObserver()

    async def _run(self, task: str, system_prompt: str) -> str:
        spec = role_spec(self.role)
        ctx = AgentContext.create(self.role, self.tools, task)
        loop = ToolCallLoop(self.adapter, system_prompt, self.observer)
        try:
            result = await loop.run(ctx)
        except Exception as e:
            logger.error("%s failed: %s", spec.label, e)
            return f"{spec.label} error: {e}"
        return result.output


class Oracle(Delegate):
    role = AgentRole.ORACLE

    async def consult(self, query: str, context: str = "") -> str:
        message = f"Context:\n{context}\n\nQuestion: {query}" if context else query
        return await self._run(message, load_prompt(role_spec(self.role).prompt))


class SearchAgent(Delegate):
    role = AgentRole.SEARCH

    async def search(self, query: str, scope: str = ".") -> str:
        return await self._run(query, render_prompt(role_spec(self.role).prompt, scope=scope or "."))


class Librarian(Delegate):
    role = AgentRole.LIBRARIAN

    def system_prompt(self, library: str, request_type: LibrarianRequestType) -> str:
        return render_prompt(
            role_spec(self.role).prompt,
            library=library,
            year=datetime.date.today().year,
            request_type=request_type.value.upper(),
            guidance=load_prompt(f"librarian_{request_type.value}"),
        )

    async def research(self, query: str, library: str, request_type: str = "conceptual") -> str:
        kind = LibrarianRequestType.parse(request_type)
        message = (
            f"Research question about {library}: {query}\n\n"
            f"Search the local codebase for existing usage of {library}, then provide your analysis."
        )
        return await self._run(message, self.system_prompt(library, kind))
