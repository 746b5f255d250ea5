"""Token-budgeted truncation for text crossing an agent boundary.

Token counts are estimated with a fixed characters-per-token ratio rather
than a real tokenizer. Changing ``CHARS_PER_TOKEN`` moves every truncation
boundary, so it is exposed as a setting instead of being computed.
"""

from __future__ import annotations

CHARS_PER_TOKEN = 4

# Characters reserved around the elision marker when splitting head and tail
MARKER_RESERVE = 50


def truncation_marker(removed: int) -> str:
    return f"\n\n... [TRUNCATED - {removed} chars removed] ...\n\n"


def truncate_output(text: str, max_tokens: int, chars_per_token: int = CHARS_PER_TOKEN) -> str:
    """Keep the head and tail of *text* so the result stays near the budget.

    Text within ``max_tokens * chars_per_token`` characters is returned
    unchanged. Longer text loses its middle, replaced by a marker stating
    how many characters were over budget.
    """
    max_chars = max_tokens * chars_per_token
    if len(text) <= max_chars:
        return text

    keep = max(max_chars // 2 - MARKER_RESERVE, 0)
    head = text[:keep]
    tail = text[len(text) - keep:] if keep else ""
    return f"{head}{truncation_marker(len(text) - max_chars)}{tail}"
