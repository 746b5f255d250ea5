import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console

app = typer.Typer(name="gora", help="AI code editing agent with oracle, search agent and feedback loops.")
console = Console()

MODES = ("build", "plan")
DEFAULT_TASK = "Follow the instructions for the current mode."

DEFAULT_PROJECT_YAML = """\
default:
  model: claude-sonnet-4-20250514
  provider: anthropic

agents:
  oracle:
    model: o3-mini
    provider: openai
  search:
    model: gemini-2.0-flash
    provider: google

feedback_loops:
  typescript: true
  tests: true
  lint: true
"""

PROMPT_BUILD = """\
# Build Mode Instructions

You are working in BUILD mode. Your goal is to implement functionality.

## Instructions
1. Read the IMPLEMENTATION_PLAN.md to understand current tasks
2. Pick the highest priority uncompleted task
3. Implement it fully (no placeholders)
4. Run feedback loops (TypeScript, tests, lint)
5. Fix any issues until all checks pass
6. Update IMPLEMENTATION_PLAN.md with progress

## Guidelines
- Search the codebase before assuming something doesn't exist
- Use subagents for context-heavy tasks
"""

PROMPT_PLAN = """\
# Plan Mode Instructions

You are working in PLAN mode. Your goal is to analyze and plan, NOT implement.

## Instructions
1. Study the specs/ directory to understand requirements
2. Search the codebase to understand current state
3. Compare specs vs implementation
4. Update IMPLEMENTATION_PLAN.md with prioritized tasks

## Guidelines
- Do NOT implement anything
- Do NOT assume functionality is missing - verify with code search
- Document findings in IMPLEMENTATION_PLAN.md
"""

AGENTS_MD = """\
## Build & Run

- **Build**: `npm run build`

## Validation

- **Tests**: `npm test`
- **Typecheck**: `npx tsc --noEmit`
- **Lint**: `npx eslint . --ext .ts`
"""

IMPLEMENTATION_PLAN_MD = """\
# Implementation Plan

## Pending Tasks

- [ ] Add your tasks here

## Completed Tasks

(Tasks will be moved here when completed)
"""

INIT_FILES = {
    "gora.yaml": DEFAULT_PROJECT_YAML,
    "PROMPT_build.md": PROMPT_BUILD,
    "PROMPT_plan.md": PROMPT_PLAN,
    "AGENTS.md": AGENTS_MD,
    "IMPLEMENTATION_PLAN.md": IMPLEMENTATION_PLAN_MD,
}


def _read_optional(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return None


def build_system_context(mode: str, root: Path) -> str:
    """Assemble the main agent's framing from the project's prompt files."""
    parts: list[str] = []

    prompt = _read_optional(root / f"PROMPT_{mode}.md")
    if prompt:
        parts.append(f"# Current Mode: {mode.upper()}\n\n{prompt}")

    agents = _read_optional(root / "AGENTS.md")
    if agents:
        parts.append(f"# Operational Guide (AGENTS.md)\n\n{agents}")

    plan = _read_optional(root / "IMPLEMENTATION_PLAN.md")
    if plan:
        parts.append(f"# Implementation Plan\n\n{plan}")

    if not parts:
        return (
            "You are gora, an AI code editing agent.\n\n"
            f"Working in {mode.upper()} mode.\n"
            "No project configuration files found. Run 'gora init' to initialize a project."
        )
    return "\n\n---\n\n".join(parts)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s | %(levelname)s | %(message)s")


def _build_orchestrator(mode: str, root: Path):
    """Create an Orchestrator for *root*, or exit if the main model has no key."""
    from gora.agents.console_observer import ConsoleObserver
    from gora.agents.roles import AgentRole
    from gora.config import api_key_for, resolve_role_models, settings
    from gora.errors import ConfigError
    from gora.orchestrator import Orchestrator

    try:
        role_models = resolve_role_models(settings)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)

    main = role_models[AgentRole.MAIN]
    if not api_key_for(main.provider, settings):
        console.print(f"[red]Error: no API key configured for the main model's provider ({main.provider}).[/red]")
        raise typer.Exit(1)

    observer = ConsoleObserver(console)
    orchestrator = Orchestrator(
        settings,
        role_models=role_models,
        system_context=build_system_context(mode, root),
        observer=observer,
        work_dir=root,
    )
    return orchestrator, observer


def _check_mode(mode: str) -> str:
    if mode not in MODES:
        raise typer.BadParameter(f"mode must be one of: {', '.join(MODES)}")
    return mode


@app.command()
def run(
    task: str = typer.Argument(DEFAULT_TASK, help="Task for the agent"),
    mode: str = typer.Option("build", "--mode", "-m", callback=_check_mode, help="Operating mode: build or plan"),
    loop: int = typer.Option(1, "--loop", "-l", help="Run the task N times (0 = until interrupted)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable detailed logging"),
) -> None:
    """Run a single task, optionally repeating it with a fresh conversation each time."""
    from gora.config import settings
    from gora.errors import GoraError

    _setup_logging(verbose)
    root = Path(settings.workdir).expanduser().resolve()

    iteration = 0
    while loop == 0 or iteration < loop:
        iteration += 1
        if loop != 1:
            limit = "∞" if loop == 0 else str(loop)
            console.rule(f"[bold magenta]Loop {iteration}/{limit}", style="magenta")
        # Prompt files are re-read every iteration; state carries over only through files
        orchestrator, _ = _build_orchestrator(mode, root)
        try:
            asyncio.run(orchestrator.chat(task))
        except GoraError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted.[/yellow]")
            raise typer.Exit(130)


@app.command()
def chat(
    mode: str = typer.Option("build", "--mode", "-m", callback=_check_mode, help="Operating mode: build or plan"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable detailed logging"),
) -> None:
    """Interactive session with the main agent."""
    from gora.agents.roles import AgentRole
    from gora.config import settings

    _setup_logging(verbose)
    root = Path(settings.workdir).expanduser().resolve()
    orchestrator, observer = _build_orchestrator(mode, root)

    models = orchestrator.role_models
    console.print(f"[bold cyan]gora[/] [dim]({mode} mode)[/]")
    for role in (AgentRole.MAIN, AgentRole.ORACLE, AgentRole.SEARCH):
        cfg = models[role]
        console.print(f"  [dim]{role.value:<8}[/] {cfg.model} [dim]({cfg.provider})[/]")
    console.print("[dim]Type /reset to start over, Ctrl-C or Ctrl-D to quit.[/]\n")
    observer.print_tools(orchestrator.registry)

    try:
        asyncio.run(_chat_session(orchestrator))
    except KeyboardInterrupt:
        console.print()


async def _chat_session(orchestrator) -> None:
    """Read messages until EOF; the SDK clients stay on this one event loop."""
    while True:
        try:
            message = console.input("[bold blue]You[/]: ")
        except EOFError:
            console.print()
            return
        if not message.strip():
            continue
        if message.strip() == "/reset":
            orchestrator.reset()
            console.print("[dim]Conversation cleared.[/dim]")
            continue
        try:
            await orchestrator.chat(message)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing files"),
) -> None:
    """Create gora.yaml, mode prompts and plan files in the current directory."""
    root = Path.cwd()
    console.print("[cyan]Initializing gora project...[/cyan]")
    for name, content in INIT_FILES.items():
        path = root / name
        if path.exists() and not force:
            console.print(f"[dim]  {name} already exists[/dim]")
            continue
        path.write_text(content, encoding="utf-8")
        console.print(f"[green]✓[/green] Created {name}")

    specs = root / "specs"
    if specs.is_dir():
        console.print("[dim]  specs/ already exists[/dim]")
    else:
        specs.mkdir()
        console.print("[green]✓[/green] Created specs/")

    console.print(
        "\n[green]Project initialized![/green]\n\n"
        "Next steps:\n"
        "1. Add your API keys to the environment or .env (ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY)\n"
        "2. Adjust gora.yaml for your project\n"
        "3. Run: [cyan]gora chat[/cyan]"
    )
