"""Wires adapters, delegates, subagents and tools around the main agent."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from gora.agents.context import AgentContext
from gora.agents.delegates import Librarian, Oracle, SearchAgent
from gora.agents.loop import CompletionClient, ToolCallLoop
from gora.agents.observer import LoopObserver, NullObserver
from gora.agents.roles import AgentRole, role_spec
from gora.agents.subagent import ParallelFanout, SubagentScheduler
from gora.config import ModelConfig, Settings, get_feedback_loops, resolve_role_models
from gora.models.turns import LoopResult, Turn
from gora.prompts.prompt_layer import render_prompt
from gora.providers import create_adapter
from gora.providers.retry import with_retries
from gora.services.local_service import LocalService
from gora.tools import ToolRegistry
from gora.tools.core_tools import create_core_tools
from gora.tools.meta_tools import create_feedback_tool, create_meta_tools

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ModelConfig, Settings], CompletionClient]


class Orchestrator:
    """Owns the main agent's conversation and everything it can delegate to."""

    def __init__(
        self,
        settings: Settings,
        role_models: dict[AgentRole, ModelConfig] | None = None,
        system_context: str = "",
        observer: LoopObserver | None = None,
        work_dir: Path | None = None,
        adapter_factory: AdapterFactory = create_adapter,
        feedback_loops: dict[str, bool] | None = None,
    ) -> None:
        self.settings = settings
        self.role_models = role_models or resolve_role_models(settings)
        self.observer: LoopObserver = observer or NullObserver()
        self.service = LocalService(work_dir)
        self.feedback_loops = feedback_loops if feedback_loops is not None else get_feedback_loops()

        self.adapters: dict[AgentRole, CompletionClient] = {}
        for role in AgentRole:
            cfg = self.role_models.get(role) or self.role_models[AgentRole.MAIN]
            self.adapters[role] = with_retries(adapter_factory(cfg, settings), settings.provider_max_retries)
            logger.info("%s agent: %s (%s)", role.value, cfg.model, cfg.provider)

        base_tools = self.build_tools(".")
        self.oracle = Oracle(self.adapters[AgentRole.ORACLE], base_tools, self.observer)
        self.search = SearchAgent(self.adapters[AgentRole.SEARCH], base_tools, self.observer)
        self.librarian = Librarian(self.adapters[AgentRole.LIBRARIAN], base_tools, self.observer)
        self.scheduler = SubagentScheduler(
            self.adapters[AgentRole.SUBAGENT],
            self.build_tools,
            self.observer,
            chars_per_token=settings.chars_per_token,
        )
        self.fanout = ParallelFanout(self.scheduler)

        self.registry = ToolRegistry(base_tools.list_all())
        self.registry.register_many(
            create_meta_tools(self.oracle, self.search, self.librarian, self.scheduler, self.fanout)
        )
        self.system_prompt = render_prompt(role_spec(AgentRole.MAIN).prompt, system_context=system_context)
        self.context = AgentContext.create(AgentRole.MAIN, self.registry)

    def build_tools(self, working_directory: str) -> ToolRegistry:
        """Core tools plus feedback_loop, rooted at *working_directory*."""
        service = self.service.scoped(working_directory)
        registry = ToolRegistry()
        registry.register_many(
            create_core_tools(
                service,
                bash_timeout_ms=self.settings.bash_timeout_ms,
                max_output_chars=self.settings.bash_max_output_chars,
            )
        )
        registry.register(
            create_feedback_tool(service.work_dir, self.feedback_loops, self.settings.feedback_output_chars)
        )
        return registry

    @property
    def conversation(self) -> list[Turn]:
        return self.context.conversation

    async def run_turn(self, message: str) -> LoopResult:
        self.context.conversation.append(Turn.user(message))
        self.context.iteration_count = 0
        loop = ToolCallLoop(self.adapters[AgentRole.MAIN], self.system_prompt, self.observer)
        return await loop.run(self.context)

    async def chat(self, message: str) -> str:
        """Send one user message to the main agent and return its reply."""
        result = await self.run_turn(message)
        return result.output

    def reset(self) -> None:
        self.context = AgentContext.create(AgentRole.MAIN, self.registry)
