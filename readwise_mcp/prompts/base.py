"""Shared helpers for highlight-based prompts."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ..api import ReadwiseAPI
from ..mcp.base import BasePrompt


class ReadwisePrompt(BasePrompt):
    def __init__(self, api: ReadwiseAPI) -> None:
        self.api = api


def format_highlights(highlights: Iterable[Dict[str, Any]]) -> str:
    """Render highlights as a numbered list, notes indented below their text."""
    lines: List[str] = []
    for index, highlight in enumerate(highlights, start=1):
        lines.append(f"{index}. {highlight.get('text', '').strip()}")
        note = highlight.get("note")
        if note:
            lines.append(f"   Note: {note.strip()}")
    return "\n".join(lines)


def with_context(text: str, context: Optional[str]) -> str:
    if not context:
        return text
    return f"{text}\n\nAdditional context: {context}"
