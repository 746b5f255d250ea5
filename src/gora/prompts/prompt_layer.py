"""Prompt layer: role prompts are .txt templates with {variable} placeholders.

Bundled templates live in ``templates/``. A project can override any of them
by placing a file with the same name in the directory named by
``GORA_PROMPTS_DIR``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

_cache: dict[tuple[str, str], str] = {}


def _template_path(name: str) -> Path:
    override_dir = os.environ.get("GORA_PROMPTS_DIR", "")
    if override_dir:
        candidate = Path(override_dir) / f"{name}.txt"
        if candidate.is_file():
            logger.debug("Using prompt override %s", candidate)
            return candidate
    return TEMPLATES_DIR / f"{name}.txt"


def load_prompt(name: str) -> str:
    """Load a prompt template by name (without extension)."""
    path = _template_path(name)
    key = (name, str(path))
    if key not in _cache:
        _cache[key] = path.read_text(encoding="utf-8").strip()
    return _cache[key]


def render_prompt(name: str, **kwargs: object) -> str:
    """Load a prompt template and fill in variables."""
    return load_prompt(name).format(**kwargs)


def clear_cache() -> None:
    _cache.clear()
