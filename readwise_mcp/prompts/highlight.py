"""``readwise_highlight``: turn a page of highlights into a task prompt."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..mcp.protocol import ContentEnvelope
from .base import ReadwisePrompt, format_highlights, with_context

Task = Literal["summarize", "analyze", "connect", "question"]

TASK_INSTRUCTIONS = {
    "summarize": "Summarize the key ideas expressed in these highlights.",
    "analyze": "Analyze these highlights: identify the main arguments and evaluate them.",
    "connect": "Find connections and recurring themes across these highlights.",
    "question": "Write thoughtful questions these highlights raise for further reflection.",
}


class ReadwiseHighlightInput(BaseModel):
    book_id: Optional[str] = Field(default=None, description="The ID of the book to get highlights from")
    page: Optional[int] = Field(default=None, ge=1, description="The page number of results to get")
    page_size: Optional[int] = Field(default=None, ge=1, le=100, description="The number of results per page (max 100)")
    search: Optional[str] = Field(default=None, description="Search term to filter highlights")
    context: Optional[str] = Field(default=None, description="Additional context to include in the prompt")
    task: Task = Field(default="summarize", description="The task to perform with the highlights")


class ReadwiseHighlightPrompt(ReadwisePrompt):
    name = "readwise_highlight"
    description = "Process highlights from Readwise (summarize, analyze, connect or question)"
    input_model = ReadwiseHighlightInput

    async def _execute(self, params: ReadwiseHighlightInput) -> ContentEnvelope:
        listing = await self.api.get_highlights(
            book_id=params.book_id,
            page=params.page,
            page_size=params.page_size,
            search=params.search,
        )
        highlights = listing.get("results", []) if listing else []
        if not highlights:
            return ContentEnvelope.text(with_context("No highlights found for the given filters.", params.context))

        text = f"{TASK_INSTRUCTIONS[params.task]}\n\nHighlights:\n{format_highlights(highlights)}"
        return ContentEnvelope.text(with_context(text, params.context))
