"""Tests for the tool-call loop: termination, caps, result ordering and errors."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FailingAdapter, LoopingAdapter, ScriptedAdapter, call_turn, text_turn
from gora.agents.context import AgentContext
from gora.agents.loop import ToolCallLoop, is_exhausted
from gora.agents.roles import AgentRole
from gora.errors import ProviderError
from gora.models.turns import ToolCallPart, Turn
from gora.tools import Tool, ToolRegistry


def _registry(read_file=None, list_files=None) -> ToolRegistry:
    def default_read(args: dict) -> str:
        return f"contents of {args.get('path')}"

    def default_list(args: dict) -> str:
        return "a.txt\nb.txt"

    return ToolRegistry(
        [
            Tool("read_file", "Read a file", {"type": "object", "properties": {}}, read_file or default_read),
            Tool("list_files", "List files", {"type": "object", "properties": {}}, list_files or default_list),
            Tool("bash", "Run a command", {"type": "object", "properties": {}}, lambda args: "ran"),
        ]
    )


def _run(adapter, ctx: AgentContext, **kwargs):
    return asyncio.run(ToolCallLoop(adapter, "system", **kwargs).run(ctx))


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_iteration(self, role, iteration, cap):
        self.events.append(("iteration", role, iteration, cap))

    def on_thinking(self, role, text):
        self.events.append(("thinking", role, text))

    def on_tool_call(self, role, name, args):
        self.events.append(("tool_call", role, name))

    def on_tool_result(self, role, name, result, is_error):
        self.events.append(("tool_result", role, name, is_error))

    def on_finish(self, role, text, iterations, tool_calls, reason):
        self.events.append(("finish", role, text, iterations, tool_calls, reason))


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------

def test_converges_when_model_stops_calling_tools():
    adapter = ScriptedAdapter(
        [
            call_turn(("c1", "read_file", {"path": "a.txt"})),
            call_turn(("c2", "list_files", {})),
            text_turn("done"),
        ]
    )
    ctx = AgentContext.create(AgentRole.MAIN, _registry(), "do it")
    result = _run(adapter, ctx)

    assert result.output == "done"
    assert result.iterations == 3
    assert result.tool_calls == 2
    assert not result.exhausted
    assert adapter.calls == 3


def test_conversation_records_calls_and_results():
    adapter = ScriptedAdapter([call_turn(("c1", "read_file", {"path": "a.txt"})), text_turn("ok")])
    ctx = AgentContext.create(AgentRole.MAIN, _registry(), "read a.txt")
    _run(adapter, ctx)

    roles = [t.role for t in ctx.conversation]
    assert roles == ["user", "assistant", "user", "assistant"]
    results = ctx.conversation[2].results
    assert [(r.call_id, r.content) for r in results] == [("c1", "contents of a.txt")]

    # the second request carries the results of the first
    second = adapter.requests[1]["conversation"]
    assert second[-1].results[0].call_id == "c1"


@pytest.mark.parametrize(
    "role,cap,label",
    [
        (AgentRole.SEARCH, 10, "Search"),
        (AgentRole.LIBRARIAN, 15, "Librarian"),
        (AgentRole.SUBAGENT, 20, "Subagent"),
    ],
)
def test_iteration_cap_returns_sentinel(role, cap, label):
    adapter = LoopingAdapter("list_files")
    ctx = AgentContext.create(role, _registry(), "never ends")
    result = _run(adapter, ctx)

    assert adapter.calls == cap
    assert result.iterations == cap
    assert result.exhausted
    assert result.output == f"{label} reached maximum iterations"
    assert is_exhausted(result.output)


def test_empty_final_text_uses_role_default():
    adapter = ScriptedAdapter([Turn(role="assistant")])
    ctx = AgentContext.create(AgentRole.ORACLE, _registry(), "question")
    assert _run(adapter, ctx).output == "No response from oracle"


def test_main_final_text_may_be_empty():
    adapter = ScriptedAdapter([Turn(role="assistant")])
    ctx = AgentContext.create(AgentRole.MAIN, _registry(), "hi")
    assert _run(adapter, ctx).output == ""


def test_provider_error_propagates():
    ctx = AgentContext.create(AgentRole.SUBAGENT, _registry(), "task")
    with pytest.raises(ProviderError, match="anthropic: overloaded"):
        _run(FailingAdapter(ProviderError("anthropic", "overloaded")), ctx)


# ---------------------------------------------------------------------------
# Result ordering
# ---------------------------------------------------------------------------

def _delayed_read(finished: list[str]):
    async def read_file(args: dict) -> str:
        await asyncio.sleep(args["delay"])
        finished.append(args["path"])
        return f"contents of {args['path']}"

    return read_file


def test_concurrent_results_follow_call_order():
    finished: list[str] = []
    adapter = ScriptedAdapter(
        [
            call_turn(
                ("id-a", "read_file", {"path": "a", "delay": 0.05}),
                ("id-b", "read_file", {"path": "b", "delay": 0.1}),
                ("id-c", "read_file", {"path": "c", "delay": 0.0}),
            ),
            text_turn("found it"),
        ]
    )
    ctx = AgentContext.create(AgentRole.SEARCH, _registry(read_file=_delayed_read(finished)), "find")
    result = _run(adapter, ctx)

    assert result.output == "found it"
    assert finished == ["c", "a", "b"]
    results = ctx.conversation[2].results
    assert [r.call_id for r in results] == ["id-a", "id-b", "id-c"]
    assert [r.content for r in results] == ["contents of a", "contents of b", "contents of c"]


def test_sequential_execution_keeps_call_order():
    finished: list[str] = []
    adapter = ScriptedAdapter(
        [
            call_turn(
                ("id-a", "read_file", {"path": "a", "delay": 0.02}),
                ("id-b", "read_file", {"path": "b", "delay": 0.0}),
            ),
            text_turn("done"),
        ]
    )
    ctx = AgentContext.create(AgentRole.MAIN, _registry(read_file=_delayed_read(finished)), "read")
    _run(adapter, ctx)

    assert finished == ["a", "b"]
    assert [r.call_id for r in ctx.conversation[2].results] == ["id-a", "id-b"]


def test_concurrency_can_be_forced_off():
    finished: list[str] = []
    adapter = ScriptedAdapter(
        [
            call_turn(
                ("id-a", "read_file", {"path": "a", "delay": 0.02}),
                ("id-b", "read_file", {"path": "b", "delay": 0.0}),
            ),
            text_turn("done"),
        ]
    )
    ctx = AgentContext.create(AgentRole.SEARCH, _registry(read_file=_delayed_read(finished)), "read")
    _run(adapter, ctx, concurrent_tools=False)
    assert finished == ["a", "b"]


# ---------------------------------------------------------------------------
# Errors become results
# ---------------------------------------------------------------------------

def test_malformed_arguments_are_answered_without_running_the_tool():
    ran: list[dict] = []

    def read_file(args: dict) -> str:
        ran.append(args)
        return "should not run"

    malformed = Turn.assistant(ToolCallPart(id="bad", name="read_file", parse_error="invalid JSON"))
    adapter = ScriptedAdapter([malformed, text_turn("recovered")])
    ctx = AgentContext.create(AgentRole.MAIN, _registry(read_file=read_file), "go")
    result = _run(adapter, ctx)

    assert result.output == "recovered"
    assert ran == []
    (res,) = ctx.conversation[2].results
    assert res.is_error
    assert res.call_id == "bad"
    assert res.content.startswith("Error: could not parse arguments for 'read_file'")


def test_tool_exception_is_fed_back_as_text():
    def read_file(args: dict) -> str:
        raise RuntimeError("disk on fire")

    adapter = ScriptedAdapter([call_turn(("c1", "read_file", {"path": "x"})), text_turn("ok")])
    ctx = AgentContext.create(AgentRole.MAIN, _registry(read_file=read_file), "go")
    result = _run(adapter, ctx)

    assert result.output == "ok"
    (res,) = ctx.conversation[2].results
    assert res.content == "Error executing 'read_file': disk on fire"
    assert res.is_error


def test_tool_outside_role_is_unknown():
    adapter = ScriptedAdapter([call_turn(("c1", "bash", {"command": "rm -rf build"})), text_turn("ok")])
    ctx = AgentContext.create(AgentRole.ORACLE, _registry(), "analyze")
    _run(adapter, ctx)

    (res,) = ctx.conversation[2].results
    assert res.content == "Unknown tool: bash"
    assert res.is_error
    assert "bash" not in adapter.requests[0]["tools"]


# ---------------------------------------------------------------------------
# Observer events
# ---------------------------------------------------------------------------

def test_observer_sees_loop_events():
    observer = RecordingObserver()
    adapter = ScriptedAdapter(
        [call_turn(("c1", "list_files", {}), text="let me look"), text_turn("all done")]
    )
    ctx = AgentContext.create(AgentRole.LIBRARIAN, _registry(), "research")
    _run(adapter, ctx, observer=observer)

    kinds = [e[0] for e in observer.events]
    assert kinds == ["iteration", "thinking", "tool_call", "tool_result", "iteration", "finish"]
    assert observer.events[0] == ("iteration", AgentRole.LIBRARIAN, 1, 15)
    assert observer.events[-1] == ("finish", AgentRole.LIBRARIAN, "all done", 2, 1, "completed")


def test_observer_sees_max_iterations_reason():
    observer = RecordingObserver()
    ctx = AgentContext.create(AgentRole.SEARCH, _registry(), "loop")
    _run(LoopingAdapter(), ctx, observer=observer)
    assert observer.events[-1][-1] == "max_iterations"
