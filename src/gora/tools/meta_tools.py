"""Meta-tools: delegation to other agents, plus the feedback_loop check.

Only the main agent is given the delegation tools. ``feedback_loop`` is a
plain validation tool and is also available to subagents.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from gora.feedback import FeedbackAggregator, to_tool_output
from gora.models.schemas import OutputFormat, SubagentTask
from gora.tools import Tool

if TYPE_CHECKING:
    from gora.agents.delegates import Librarian, Oracle, SearchAgent
    from gora.agents.subagent import ParallelFanout, SubagentScheduler

logger = logging.getLogger(__name__)

DEFAULT_SUBAGENT_TOKENS = 2000
DEFAULT_PARALLEL_TOKENS = 1000


def _output_format(value: str | None) -> OutputFormat:
    try:
        return OutputFormat(value or OutputFormat.FULL.value)
    except ValueError:
        return OutputFormat.FULL


def create_feedback_tool(
    work_dir: Path,
    enabled: dict[str, bool] | None = None,
    output_limit: int = 2000,
) -> Tool:
    async def feedback_loop(args: dict) -> str:
        directory = args.get("working_directory") or "."
        target = Path(directory)
        if not target.is_absolute():
            target = work_dir / target
        results = await FeedbackAggregator(target, enabled, output_limit).run()
        return to_tool_output(results)

    return Tool(
        name="feedback_loop",
        description=(
            "Run feedback loops to validate code quality: type checking (tsc --noEmit), "
            "tests (vitest/jest/npm test) and lint (eslint). Checks whose tooling is not "
            "installed or configured are reported as skipped. Run it after making changes "
            "and before considering a task done; if something fails, fix it and run again."
        ),
        parameters={
            "type": "object",
            "properties": {
                "working_directory": {
                    "type": "string",
                    "description": "Directory to run checks in (default: current directory)",
                },
            },
            "required": [],
        },
        execute=feedback_loop,
    )


def create_meta_tools(
    oracle: Oracle,
    search: SearchAgent,
    librarian: Librarian,
    scheduler: SubagentScheduler,
    fanout: ParallelFanout,
) -> list[Tool]:
    async def consult_oracle(args: dict) -> str:
        return await oracle.consult(args["query"], args.get("context") or "")

    async def search_agent(args: dict) -> str:
        return await search.search(args["query"], args.get("scope") or ".")

    async def research(args: dict) -> str:
        return await librarian.research(args["query"], args["library"], args.get("type") or "conceptual")

    async def subagent(args: dict) -> str:
        task = SubagentTask(
            task=args["task"],
            working_directory=args.get("working_directory") or ".",
            max_output_tokens=int(args.get("max_output_tokens") or DEFAULT_SUBAGENT_TOKENS),
            output_format=_output_format(args.get("output_format")),
        )
        try:
            return await scheduler.spawn(task)
        except Exception as e:
            logger.error("Subagent failed: %s", e)
            return f"Subagent error: {e}"

    async def parallel_subagents(args: dict) -> str:
        raw_tasks = args.get("tasks") or []
        if not isinstance(raw_tasks, list):
            return "Error: tasks must be an array of {name, task} objects"
        per_task = int(args.get("max_output_tokens_per_task") or DEFAULT_PARALLEL_TOKENS)
        tasks: list[SubagentTask] = []
        for i, item in enumerate(raw_tasks, 1):
            if not isinstance(item, dict) or not item.get("task"):
                return f"Error: task #{i} is missing its 'task' field"
            tasks.append(
                SubagentTask(
                    name=item.get("name") or f"task-{i}",
                    task=item["task"],
                    working_directory=item.get("working_directory") or ".",
                    max_output_tokens=per_task,
                    output_format=OutputFormat.SUMMARY,
                )
            )
        result = await fanout.run(tasks)
        return result.format()

    return [
        Tool(
            name="oracle",
            description=(
                "Consult the oracle - a powerful reasoning model for complex analysis tasks. "
                "The oracle is READ-ONLY and cannot modify files, but excels at code review, "
                "finding bugs, analyzing architecture, debugging difficult issues and planning "
                "refactors. It is slower and more expensive, so use it judiciously."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The question or task for the oracle. Be specific about what you want analyzed.",
                    },
                    "context": {
                        "type": "string",
                        "description": "Optional additional context (e.g., file contents, error messages).",
                    },
                },
                "required": ["query"],
            },
            execute=consult_oracle,
        ),
        Tool(
            name="subagent",
            description=(
                "Spawn an isolated subagent to perform a focused task. The subagent gets a fresh "
                "context and all core tools except the delegation tools, runs until completion, "
                "then returns only its final result; its intermediate reads are discarded. "
                "max_output_tokens limits how much comes back to you (default: 2000)."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "task": {
                        "type": "string",
                        "description": "Clear description of the task. Be specific about the output you want.",
                    },
                    "working_directory": {
                        "type": "string",
                        "description": "Optional working directory for the subagent (default: current directory)",
                    },
                    "max_output_tokens": {
                        "type": "integer",
                        "description": "Maximum tokens in the response (default: 2000).",
                    },
                    "output_format": {
                        "type": "string",
                        "enum": [f.value for f in OutputFormat],
                        "description": "'full' (complete response), 'summary' (condensed), 'structured' (JSON)",
                    },
                },
                "required": ["task"],
            },
            execute=subagent,
        ),
        Tool(
            name="search_agent",
            description=(
                "Spawn a fast, read-only search agent to explore the codebase. It fires many "
                "searches per turn and returns a summary of what it found and where. Use it for "
                "questions like 'where is the auth logic?' or 'how does routing work?'."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "What to search for in the codebase."},
                    "scope": {
                        "type": "string",
                        "description": "Optional directory to limit search scope (default: entire codebase)",
                    },
                },
                "required": ["query"],
            },
            execute=search_agent,
        ),
        Tool(
            name="parallel_subagents",
            description=(
                "Spawn MULTIPLE subagents to work in PARALLEL, each with its own fresh context. "
                "Results are returned together in task order. Tasks must be INDEPENDENT and must "
                "not edit the same files: subagents cannot see each other's work."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "tasks": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string", "description": "Short name for this task"},
                                "task": {"type": "string", "description": "What this subagent should do"},
                                "working_directory": {"type": "string", "description": "Optional working directory"},
                            },
                            "required": ["name", "task"],
                        },
                        "description": "Array of tasks to run in parallel",
                    },
                    "max_output_tokens_per_task": {
                        "type": "integer",
                        "description": "Max tokens per subagent response (default: 1000)",
                    },
                },
                "required": ["tasks"],
            },
            execute=parallel_subagents,
        ),
        Tool(
            name="librarian",
            description=(
                "Summon THE LIBRARIAN - a specialized agent for researching an external library or "
                "framework: how to use it, how it is implemented, real usage examples, or why it "
                "misbehaves."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "What you want to know. Be specific."},
                    "library": {
                        "type": "string",
                        "description": "The library or framework name (e.g., 'react', 'express', 'zod')",
                    },
                    "type": {
                        "type": "string",
                        "enum": ["conceptual", "implementation", "examples", "troubleshooting"],
                        "description": (
                            "conceptual (how to use), implementation (source code), "
                            "examples (real usage), troubleshooting (why error)"
                        ),
                    },
                },
                "required": ["query", "library"],
            },
            execute=research,
        ),
    ]
