"""Isolated subagents and parallel fan-out.

A subagent gets a fresh conversation and the read/write core tools (no
meta-tools), runs to completion, and hands back only its final text cut to
the caller's token budget. Fan-out runs several subagents concurrently on
one event loop and reassembles their results in the order the tasks were
given.

Concurrent subagents share the working tree with no locking; callers must
give them disjoint files.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable

from gora.agents.context import AgentContext
from gora.agents.loop import CompletionClient, ToolCallLoop
from gora.agents.observer import LoopObserver, NullObserver
from gora.agents.roles import AgentRole, role_spec
from gora.budget import CHARS_PER_TOKEN, truncate_output
from gora.models.schemas import FanoutResult, OutputFormat, ParallelTaskResult, SubagentTask
from gora.prompts.prompt_layer import render_prompt
from gora.tools import ToolRegistry

logger = logging.getLogger(__name__)

# Builds the tool set for a subagent rooted at the given working directory
ToolFactory = Callable[[str], ToolRegistry]


class SubagentScheduler:
    def __init__(
        self,
        adapter: CompletionClient,
        tool_factory: ToolFactory,
        observer: LoopObserver | None = None,
        chars_per_token: int = CHARS_PER_TOKEN,
    ) -> None:
        self.adapter = adapter
        self.tool_factory = tool_factory
        self.observer: LoopObserver = observer or NullObserver()
        self.chars_per_token = chars_per_token

    @staticmethod
    def system_prompt(task: SubagentTask) -> str:
        output_format = OutputFormat(task.output_format)
        instructions = render_prompt(f"subagent_output_{output_format.value}", max_tokens=task.max_output_tokens)
        return render_prompt(
            role_spec(AgentRole.SUBAGENT).prompt,
            output_instructions=instructions,
            working_directory=task.working_directory,
        )

    def create_context(self, task: SubagentTask) -> AgentContext:
        return AgentContext.create(AgentRole.SUBAGENT, self.tool_factory(task.working_directory), task.task)

    async def spawn(self, task: SubagentTask) -> str:
        """Run one subagent to completion and return its budgeted output.

        Provider failures propagate to the caller.
        """
        logger.info("Spawning subagent '%s' in %s", task.name, task.working_directory)
        ctx = self.create_context(task)
        loop = ToolCallLoop(self.adapter, self.system_prompt(task), self.observer)
        result = await loop.run(ctx)
        return truncate_output(result.output, task.max_output_tokens, self.chars_per_token)


class ParallelFanout:
    def __init__(self, scheduler: SubagentScheduler) -> None:
        self.scheduler = scheduler

    async def _run_task(self, task: SubagentTask) -> ParallelTaskResult:
        try:
            result = await self.scheduler.spawn(task)
        except Exception as e:
            logger.warning("Parallel task '%s' failed: %s", task.name, e)
            return ParallelTaskResult(name=task.name, success=False, result=f"Error: {e}")
        return ParallelTaskResult(name=task.name, success=True, result=result)

    async def run(self, tasks: Iterable[SubagentTask]) -> FanoutResult:
        tasks = list(tasks)
        logger.info("Starting %d parallel subagents: %s", len(tasks), ", ".join(t.name for t in tasks))
        start = time.monotonic()
        # gather returns results in argument order, whatever order they finish in
        results = await asyncio.gather(*(self._run_task(t) for t in tasks))
        elapsed = time.monotonic() - start
        failed = sum(1 for r in results if not r.success)
        logger.info("Parallel subagents done in %.1fs (%d failed)", elapsed, failed)
        return FanoutResult(results=list(results), elapsed_seconds=elapsed)
