from __future__ import annotations

import logging
from pathlib import Path

from gora.services.file_service import FileService

logger = logging.getLogger(__name__)

SKIPPED_NAMES = {"node_modules"}


class EditError(ValueError):
    """An edit could not be applied unambiguously."""


class LocalService(FileService):
    def __init__(self, work_dir: Path | None = None) -> None:
        self.work_dir = (work_dir or Path.cwd()).resolve()

    def scoped(self, path: str) -> LocalService:
        """Return a service rooted at *path* (relative paths resolve against this one)."""
        if not path or path == ".":
            return self
        return LocalService(self.resolve(path))

    def resolve(self, path: str) -> Path:
        """Resolve path relative to work_dir."""
        p = Path(path)
        if p.is_absolute():
            return p
        return self.work_dir / p

    # --- FileService interface ---

    def read_file(self, path: str) -> str:
        return self.resolve(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        p = self.resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        logger.info("Written: %s (%d lines)", p, content.count("\n") + 1)

    def edit_file(self, path: str, old_text: str, new_text: str) -> None:
        """Replace exactly one occurrence of *old_text*."""
        p = self.resolve(path)
        content = p.read_text(encoding="utf-8")
        count = content.count(old_text)
        if count == 0:
            raise EditError(
                f"Could not find the specified text in {path}. Make sure the old_str matches exactly."
            )
        if count > 1:
            raise EditError(
                f"Found {count} matches for the specified text. "
                "Please use a more specific string to avoid ambiguity."
            )
        p.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")

    def list_files(self, path: str = ".", max_depth: int = 2) -> list[str]:
        """List entries recursively, skipping hidden files and node_modules."""
        root = self.resolve(path)
        results: list[str] = []

        def walk(directory: Path, depth: int) -> None:
            if depth > max_depth:
                return
            for entry in sorted(directory.iterdir()):
                if entry.name.startswith(".") or entry.name in SKIPPED_NAMES:
                    continue
                rel = entry.relative_to(root).as_posix()
                if entry.is_dir():
                    results.append(f"{rel}/")
                    walk(entry, depth + 1)
                else:
                    results.append(rel)

        walk(root, 0)
        return results

    def file_exists(self, path: str) -> bool:
        return self.resolve(path).exists()
