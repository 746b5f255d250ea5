"""Core file and shell tools backed by a FileService."""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path

from gora.services.file_service import FileService
from gora.services.local_service import EditError
from gora.services.shell import run_command
from gora.tools import Tool

MAX_MATCHES_PER_FILE = 50
MAX_SEARCH_MATCHES = 200
DEFAULT_BASH_TIMEOUT_MS = 30_000
DEFAULT_MAX_OUTPUT_CHARS = 100_000
SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv"}


def create_core_tools(
    service: FileService,
    bash_timeout_ms: int = DEFAULT_BASH_TIMEOUT_MS,
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
) -> list[Tool]:
    def read_file(args: dict) -> str:
        path = args["path"]
        try:
            return service.read_file(path)
        except (OSError, UnicodeDecodeError) as e:
            return f"Error reading file: {e}"

    def list_files(args: dict) -> str:
        path = args.get("path") or "."
        try:
            entries = service.list_files(path)
        except OSError as e:
            return f"Error listing files: {e}"
        return "\n".join(entries) if entries else "No files found"

    def code_search(args: dict) -> str:
        pattern = args["pattern"]
        search_path = args.get("path") or "."
        file_type = args.get("file_type")
        flags = 0 if args.get("case_sensitive", False) else re.IGNORECASE
        try:
            regex = re.compile(pattern, flags)
        except re.error:
            regex = re.compile(re.escape(pattern), flags)

        root = service.resolve(search_path)
        if not root.exists():
            return f"Error: path not found: {search_path}"
        include = f"*.{file_type.lstrip('.')}" if file_type else None

        matches: list[str] = []
        for fpath in _walk_files(root, include):
            try:
                text = fpath.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            rel = _display_path(fpath, service.work_dir)
            in_file = 0
            for i, line in enumerate(text.splitlines(), 1):
                if not regex.search(line):
                    continue
                matches.append(f"{rel}:{i}:{line.rstrip()}")
                in_file += 1
                if len(matches) >= MAX_SEARCH_MATCHES:
                    matches.append(f"... (truncated at {MAX_SEARCH_MATCHES} matches)")
                    return "\n".join(matches)
                if in_file >= MAX_MATCHES_PER_FILE:
                    break
        if not matches:
            return "No matches found"
        return "\n".join(matches)

    def edit_file(args: dict) -> str:
        path = args["path"]
        old_str = args.get("old_str", "")
        new_str = args.get("new_str", "")
        try:
            if not service.file_exists(path):
                if old_str == "":
                    service.write_file(path, new_str)
                    return f"Created new file: {path}"
                return f"Error: File not found: {path}"
            if old_str == "":
                service.write_file(path, new_str)
                return f"Replaced entire file: {path}"
            service.edit_file(path, old_str, new_str)
        except EditError as e:
            return f"Error: {e}"
        except (OSError, UnicodeDecodeError) as e:
            return f"Error editing file: {e}"
        return f"Successfully edited {path}"

    async def bash(args: dict) -> str:
        command = args["command"]
        timeout_ms = args.get("timeout") or bash_timeout_ms
        result = await run_command(command, service.work_dir, timeout_ms / 1000)
        if result.timed_out:
            return f"Error: command timed out after {timeout_ms}ms"
        if result.returncode is None:
            return f"Error: {result.stderr}"
        output = result.stdout
        if result.stderr:
            output += f"\nSTDERR: {result.stderr}"
        if result.returncode != 0:
            output += f"\n(exit code {result.returncode})"
        output = output.strip("\n")
        if not output:
            return "Command completed (no output)"
        if len(output) > max_output_chars:
            output = output[:max_output_chars] + f"\n... (output truncated at {max_output_chars} chars)"
        return output

    return [
        Tool(
            name="read_file",
            description="Read the contents of a file at the specified path.",
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "The path to the file to read"},
                },
                "required": ["path"],
            },
            execute=read_file,
        ),
        Tool(
            name="list_files",
            description=(
                "List all files and directories in the specified path. "
                "Hidden files and node_modules are excluded."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "The directory path to list (default: current directory)",
                    },
                },
                "required": [],
            },
            execute=list_files,
        ),
        Tool(
            name="code_search",
            description=(
                "Search file contents for a regex pattern. "
                "Returns matching lines as file:line:text. "
                "Use it to find definitions, usages and TODO/FIXME comments."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "The search pattern (supports regex)"},
                    "path": {
                        "type": "string",
                        "description": "Directory to search in (default: current directory)",
                    },
                    "file_type": {
                        "type": "string",
                        "description": "File extension to filter (e.g., 'ts', 'js', 'py')",
                    },
                    "case_sensitive": {
                        "type": "boolean",
                        "description": "Whether search is case-sensitive (default: false)",
                    },
                },
                "required": ["pattern"],
            },
            execute=code_search,
        ),
        Tool(
            name="edit_file",
            description=(
                "Edit a file by replacing a specific string with new content. "
                "If the file doesn't exist and old_str is empty, creates a new file. "
                "The old_str must match EXACTLY (including whitespace) to avoid ambiguity."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "The path to the file to edit"},
                    "old_str": {
                        "type": "string",
                        "description": "The exact string to replace (empty string to create new file)",
                    },
                    "new_str": {"type": "string", "description": "The new string to insert"},
                },
                "required": ["path", "old_str", "new_str"],
            },
            execute=edit_file,
        ),
        Tool(
            name="bash",
            description=(
                "Execute a bash command. Use for running scripts and tests, "
                "installing packages, git operations and any other shell command."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "The bash command to execute"},
                    "timeout": {
                        "type": "integer",
                        "description": f"Timeout in milliseconds (default: {bash_timeout_ms})",
                    },
                },
                "required": ["command"],
            },
            execute=bash,
        ),
    ]


def _display_path(fpath: Path, work_dir: Path) -> str:
    try:
        return fpath.relative_to(work_dir).as_posix()
    except ValueError:
        return str(fpath)


def _walk_files(root: Path, include: str | None = None) -> list[Path]:
    """Recursively collect files, optionally filtered by glob."""
    if root.is_file():
        return [root]
    files: list[Path] = []
    for fpath in sorted(root.rglob("*")):
        if not fpath.is_file():
            continue
        if any(part in SKIPPED_DIRS for part in fpath.relative_to(root).parts):
            continue
        if include and not fnmatch.fnmatch(fpath.name, include):
            continue
        files.append(fpath)
    return files
