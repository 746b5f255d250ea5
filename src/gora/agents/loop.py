"""Tool-call loop: ask the model, run the tools it requests, repeat.

The loop ends in exactly one of two ways: a model turn with no tool calls
(its text is the result), or the context's iteration cap being reached (the
role's "reached maximum iterations" sentinel is the result). Tool failures
are fed back to the model as ordinary result text so it can correct itself.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from gora.agents.context import AgentContext
from gora.agents.observer import LoopObserver, NullObserver
from gora.agents.roles import role_spec
from gora.models.turns import LoopResult, ToolCallPart, ToolResultPart, Turn
from gora.tools import ToolSchema

logger = logging.getLogger(__name__)

MAX_ITERATIONS_MARKER = "reached maximum iterations"


def is_exhausted(text: str) -> bool:
    """True when a delegate's output is an iteration-cap sentinel."""
    return MAX_ITERATIONS_MARKER in text


class CompletionClient(Protocol):
    async def complete(self, conversation: list[Turn], tools: list[ToolSchema], system: str = "") -> Turn: ...


class ToolCallLoop:
    def __init__(
        self,
        adapter: CompletionClient,
        system_prompt: str = "",
        observer: LoopObserver | None = None,
        concurrent_tools: bool | None = None,
    ) -> None:
        self.adapter = adapter
        self.system_prompt = system_prompt
        self.observer: LoopObserver = observer or NullObserver()
        # None means "use the role's setting"
        self.concurrent_tools = concurrent_tools

    async def run(self, ctx: AgentContext) -> LoopResult:
        spec = role_spec(ctx.role)
        concurrent = spec.concurrent_tools if self.concurrent_tools is None else self.concurrent_tools
        tools = ctx.advertised_tools()
        total_tool_calls = 0

        logger.info(
            "%s loop starting (%d tools, cap=%s)", spec.label, len(tools), ctx.iteration_cap,
        )

        while not ctx.exhausted:
            ctx.iteration_count += 1
            self.observer.on_iteration(ctx.role, ctx.iteration_count, ctx.iteration_cap)

            turn = await self.adapter.complete(ctx.conversation, tools, self.system_prompt)
            ctx.conversation.append(turn)

            calls = turn.tool_calls
            if not calls:
                output = turn.text or spec.empty_response
                logger.info(
                    "%s finished after %d iterations, %d tool calls",
                    spec.label, ctx.iteration_count, total_tool_calls,
                )
                self.observer.on_finish(ctx.role, output, ctx.iteration_count, total_tool_calls, "completed")
                return LoopResult(output=output, iterations=ctx.iteration_count, tool_calls=total_tool_calls)

            if turn.text:
                self.observer.on_thinking(ctx.role, turn.text)

            results = await self._execute(ctx, calls, concurrent)
            total_tool_calls += len(calls)
            ctx.conversation.append(Turn.tool_results(results))

        logger.warning("%s hit max iterations (%s)", spec.label, ctx.iteration_cap)
        sentinel = spec.exhausted_message
        self.observer.on_finish(ctx.role, sentinel, ctx.iteration_count, total_tool_calls, "max_iterations")
        return LoopResult(
            output=sentinel,
            iterations=ctx.iteration_count,
            tool_calls=total_tool_calls,
            exhausted=True,
        )

    async def _execute(
        self, ctx: AgentContext, calls: list[ToolCallPart], concurrent: bool
    ) -> list[ToolResultPart]:
        """Run a turn's calls; the returned list always follows call order."""
        if concurrent and len(calls) > 1:
            return list(await asyncio.gather(*(self._run_one(ctx, call) for call in calls)))
        results = []
        for call in calls:
            results.append(await self._run_one(ctx, call))
        return results

    async def _run_one(self, ctx: AgentContext, call: ToolCallPart) -> ToolResultPart:
        args: dict[str, Any] = call.input
        self.observer.on_tool_call(ctx.role, call.name, args)
        result = await ctx.registry.run_call(call)
        self.observer.on_tool_result(ctx.role, call.name, result.content, result.is_error)
        return result
