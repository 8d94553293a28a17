"""``readwise_search``: search highlights and wrap the matches in a prompt."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..mcp.protocol import ContentEnvelope
from .base import ReadwisePrompt, format_highlights, with_context


class ReadwiseSearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="Search query to find highlights")
    limit: Optional[int] = Field(default=10, ge=1, le=100, description="Maximum number of results to return")
    context: Optional[str] = Field(default=None, description="Additional context to include in the prompt")


class ReadwiseSearchPrompt(ReadwisePrompt):
    name = "readwise_search"
    description = "Search Readwise highlights and discuss the results"
    input_model = ReadwiseSearchInput

    async def _execute(self, params: ReadwiseSearchInput) -> ContentEnvelope:
        matches = await self.api.search_highlights(params.query, params.limit)
        if not matches:
            text = f'No highlights matched "{params.query}".'
        else:
            text = (
                f'Here are {len(matches)} highlights matching "{params.query}". '
                "Discuss what they have in common and what they reveal about the topic.\n\n"
                f"{format_highlights(matches)}"
            )
        return ContentEnvelope.text(with_context(text, params.context))
