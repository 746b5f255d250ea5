"""Rich console observer for the tool-call loops."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from gora.agents.roles import AgentRole, role_spec
from gora.tools import ToolRegistry

MAX_RESULT_LINES = 30
MAX_RESULT_CHARS = 2000


def _truncate(text: str) -> str:
    lines = text.splitlines()
    if len(lines) > MAX_RESULT_LINES or len(text) > MAX_RESULT_CHARS:
        kept = lines[:MAX_RESULT_LINES]
        truncated = "\n".join(kept)
        if len(truncated) > MAX_RESULT_CHARS:
            truncated = truncated[:MAX_RESULT_CHARS]
        omitted = len(lines) - MAX_RESULT_LINES
        if omitted > 0:
            truncated += f"\n... ({omitted} more lines)"
        return truncated
    return text


TOOL_ICONS = {
    "read_file": "👁 ",
    "list_files": "📂",
    "code_search": "🔍",
    "edit_file": "✏️ ",
    "bash": "💻",
    "feedback_loop": "✅",
    "oracle": "🔮",
    "search_agent": "🔎",
    "librarian": "📚",
    "subagent": "🤖",
    "parallel_subagents": "⚡",
}

ROLE_STYLES = {
    AgentRole.MAIN: "blue",
    AgentRole.ORACLE: "magenta",
    AgentRole.SEARCH: "cyan",
    AgentRole.LIBRARIAN: "yellow",
    AgentRole.SUBAGENT: "green",
}


def _format_arg_value(value: Any) -> str:
    """Format a single argument value, truncating long strings."""
    s = str(value)
    if len(s) > 120:
        return s[:120] + "..."
    return s


class ConsoleObserver:
    def __init__(self, console: Console | None = None, show_delegates: bool = True) -> None:
        self.console = console or Console()
        self.show_delegates = show_delegates

    def _visible(self, role: AgentRole) -> bool:
        return role == AgentRole.MAIN or self.show_delegates

    def _indent(self, role: AgentRole) -> str:
        return "  " if role == AgentRole.MAIN else "      "

    def print_tools(self, registry: ToolRegistry) -> None:
        table = Table(title="Available tools", border_style="dim", show_lines=False)
        table.add_column("Tool", style="bold cyan", no_wrap=True)
        table.add_column("Description", style="dim")
        for tool in registry.list_all():
            icon = TOOL_ICONS.get(tool.name, "🔧")
            params = tool.parameters.get("properties", {})
            param_names = ", ".join(params.keys()) if params else ""
            table.add_row(f"{icon} {tool.name}({param_names})", tool.description)
        self.console.print(table)
        self.console.print()

    def on_iteration(self, role: AgentRole, iteration: int, cap: int | None) -> None:
        if role != AgentRole.MAIN:
            return
        limit = f"/{cap}" if cap is not None else ""
        self.console.rule(f"[bold blue]Step {iteration}{limit}", style="blue")

    def on_thinking(self, role: AgentRole, text: str) -> None:
        if not self._visible(role):
            return
        style = ROLE_STYLES.get(role, "yellow")
        self.console.print(
            Panel(
                _truncate(text),
                title=f"[bold {style}]{role_spec(role).label} thinking",
                border_style=style,
                padding=(0, 1),
            )
        )

    def on_tool_call(self, role: AgentRole, name: str, args: dict[str, Any]) -> None:
        if not self._visible(role):
            return
        icon = TOOL_ICONS.get(name, "🔧")
        indent = self._indent(role)
        prefix = "" if role == AgentRole.MAIN else f"[dim]{role_spec(role).label} →[/] "
        self.console.print(f"{indent}{prefix}{icon} [bold cyan]{name}[/]")
        for k, v in args.items():
            val = _format_arg_value(v)
            # Multiline values (e.g. old_str / new_str) get a panel
            if "\n" in val:
                self.console.print(f"{indent}    [dim]{k}:[/]")
                self.console.print(
                    Panel(
                        Syntax(val, "text", theme="ansi_dark", word_wrap=True),
                        border_style="dim",
                        padding=(0, 1),
                    )
                )
            else:
                self.console.print(f"{indent}    [dim]{k}:[/] {val}")

    def on_tool_result(self, role: AgentRole, name: str, result: str, is_error: bool) -> None:
        if role != AgentRole.MAIN:
            return
        truncated = _truncate(result)
        border = "red" if is_error else "dim"
        self.console.print(
            Panel(
                Syntax(truncated, "text", theme="ansi_dark", word_wrap=True)
                if len(truncated) > 200
                else Text(truncated, style="dim"),
                title=f"[{border}]result",
                border_style=border,
                padding=(0, 1),
            )
        )

    def on_finish(self, role: AgentRole, text: str, iterations: int, tool_calls: int, reason: str) -> None:
        if role != AgentRole.MAIN:
            if self.show_delegates:
                self.console.print(
                    f"      [dim]{role_spec(role).label} done: {iterations} iterations, "
                    f"{tool_calls} tool calls ({reason})[/]"
                )
            return
        self.console.print()
        self.console.rule("[bold green]Agent finished", style="green")
        self.console.print(
            Panel(
                text,
                title=f"[bold green]Result ({iterations} steps, {tool_calls} tool calls)",
                border_style="green",
                padding=(0, 1),
            )
        )
