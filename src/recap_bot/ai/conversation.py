"""Render stored conversation entries into a bounded prompt context block."""

from __future__ import annotations

from typing import Sequence

from recap_bot.core.types import EntryKind, Role
from recap_bot.storage.models import ConversationEntry

CONTEXT_WINDOW_SIZE = 5
USER_SNIPPET_CHARS = 200
ASSISTANT_SNIPPET_CHARS = 300
ELLIPSIS = "..."


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def render_entry(entry: ConversationEntry) -> str | None:
    """Render one entry as a context line, or None for roles that are skipped."""
    if entry.role == Role.USER:
        if entry.kind == EntryKind.URL_SUMMARY and entry.source_url:
            return f"User submitted URL: {entry.source_url}"
        return f"User: {_clip(entry.content, USER_SNIPPET_CHARS)}"
    if entry.role == Role.ASSISTANT:
        return f"Assistant: {_clip(entry.content, ASSISTANT_SNIPPET_CHARS)}"
    return None


def build_context(
    entries: Sequence[ConversationEntry],
    window_size: int = CONTEXT_WINDOW_SIZE,
) -> str:
    """Render the last *window_size* entries, oldest first, one per line.

    The window counts entries regardless of role. Returns an empty string for
    an empty sequence.
    """
    if not entries or window_size <= 0:
        return ""

    lines: list[str] = []
    for entry in entries[-window_size:]:
        line = render_entry(entry)
        if line is not None:
            lines.append(line)
    return "\n".join(lines)
