"""Book listing and recent-content tools."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..mcp.protocol import RawValue
from .base import ReadwiseTool


class GetBooksInput(BaseModel):
    page: Optional[int] = Field(default=None, ge=1, description="Page number to retrieve")
    page_size: Optional[int] = Field(default=None, ge=1, le=100, description="Number of items per page (max 100)")


class GetBooksTool(ReadwiseTool):
    name = "get_books"
    description = "Get books from your Readwise library"
    input_model = GetBooksInput

    async def _execute(self, params: GetBooksInput) -> RawValue:
        return RawValue(value=await self.api.get_books(params.page, params.page_size))


class GetRecentContentInput(BaseModel):
    limit: int = Field(default=10, ge=1, le=50, description="Number of recent items to retrieve (default: 10, max: 50)")
    content_type: Literal["books", "highlights", "all"] = Field(
        default="all", description="Type of content to retrieve (default: all)"
    )


class GetRecentContentTool(ReadwiseTool):
    name = "get_recent_content"
    description = "Get the most recently added books and highlights"
    input_model = GetRecentContentInput

    async def _execute(self, params: GetRecentContentInput) -> RawValue:
        items = []
        if params.content_type in ("books", "all"):
            books = await self.api.get_books(page_size=params.limit)
            items.extend({"kind": "book", **book} for book in books.get("results", []))
        if params.content_type in ("highlights", "all"):
            highlights = await self.api.get_highlights(page_size=params.limit)
            items.extend({"kind": "highlight", **item} for item in highlights.get("results", []))

        items.sort(key=lambda item: item.get("updated") or item.get("updated_at") or "", reverse=True)
        return RawValue(value={"count": min(len(items), params.limit), "results": items[: params.limit]})
