"""Highlight tools: listing, search and CRUD."""

from __future__ import annotations

from typing import List, Optional

import structlog
from pydantic import BaseModel, Field

from ..mcp.base import ToolExecutionError
from ..mcp.protocol import RawValue
from .base import ReadwiseTool, compact, require_confirmation

logger = structlog.get_logger(__name__)

DELETE_CONFIRMATION = "DELETE"


class GetHighlightsInput(BaseModel):
    book_id: Optional[str] = Field(default=None, description="Filter highlights by book ID")
    page: Optional[int] = Field(default=None, ge=1, description="Page number for pagination")
    page_size: Optional[int] = Field(default=None, ge=1, le=100, description="Number of results per page (1-100)")
    search: Optional[str] = Field(default=None, description="Search term to filter highlights")


class GetHighlightsTool(ReadwiseTool):
    name = "get_highlights"
    description = "Get highlights from your Readwise library"
    input_model = GetHighlightsInput

    async def _execute(self, params: GetHighlightsInput) -> RawValue:
        result = await self.api.get_highlights(**params.model_dump())
        return RawValue(value=result)


class SearchHighlightsInput(BaseModel):
    query: str = Field(..., min_length=1, description="The search query to find highlights")
    limit: Optional[int] = Field(default=None, ge=1, description="Maximum number of results to return")


class SearchHighlightsTool(ReadwiseTool):
    name = "search_highlights"
    description = "Search for highlights in your Readwise library"
    input_model = SearchHighlightsInput

    async def _execute(self, params: SearchHighlightsInput) -> RawValue:
        matches = await self.api.search_highlights(params.query, params.limit)
        return RawValue(value=matches)


class CreateHighlightInput(BaseModel):
    text: str = Field(..., min_length=1, description="The text to highlight")
    book_id: str = Field(..., min_length=1, description="The ID of the book to create the highlight in")
    note: Optional[str] = Field(default=None, description="Note to add to the highlight")
    location: Optional[int] = Field(default=None, description="Location in the book (e.g. page number)")
    location_type: Optional[str] = Field(default=None, description="Type of location (e.g. page, chapter)")
    color: Optional[str] = Field(default=None, description="Color for the highlight")
    tags: Optional[List[str]] = Field(default=None, description="Tags to add to the highlight")


class CreateHighlightTool(ReadwiseTool):
    name = "create_highlight"
    description = "Create a new highlight in your Readwise library"
    input_model = CreateHighlightInput
    read_only = False
    idempotent = False

    async def _execute(self, params: CreateHighlightInput) -> RawValue:
        highlight = compact(params.model_dump(), exclude={"book_id"})
        highlight["book_id"] = params.book_id
        return RawValue(value=await self.api.create_highlight(highlight))


class UpdateHighlightInput(BaseModel):
    highlight_id: str = Field(..., min_length=1, description="The ID of the highlight to update")
    text: Optional[str] = Field(default=None, description="New text for the highlight")
    note: Optional[str] = Field(default=None, description="Note to add to the highlight")
    location: Optional[int] = Field(default=None, description="Location in the book")
    location_type: Optional[str] = Field(default=None, description="Type of location")
    color: Optional[str] = Field(default=None, description="Color for the highlight")
    tags: Optional[List[str]] = Field(default=None, description="Tags for the highlight")


class UpdateHighlightTool(ReadwiseTool):
    name = "update_highlight"
    description = "Update an existing highlight in your Readwise library"
    input_model = UpdateHighlightInput
    read_only = False

    async def _execute(self, params: UpdateHighlightInput) -> RawValue:
        changes = compact(params.model_dump(), exclude={"highlight_id"})
        if not changes:
            raise ToolExecutionError("No changes provided for highlight", code="invalid_parameters")
        return RawValue(value=await self.api.update_highlight(params.highlight_id, changes))


class DeleteHighlightInput(BaseModel):
    highlight_id: str = Field(..., min_length=1, description="The ID of the highlight to delete")
    confirmation: str = Field(..., description='Type "DELETE" to confirm deletion')


class DeleteHighlightTool(ReadwiseTool):
    name = "delete_highlight"
    description = "Delete a highlight from your Readwise library"
    input_model = DeleteHighlightInput
    read_only = False
    destructive = True

    async def _execute(self, params: DeleteHighlightInput) -> RawValue:
        require_confirmation(params.confirmation, DELETE_CONFIRMATION)
        await self.api.delete_highlight(params.highlight_id)
        logger.info("Highlight deleted", highlight_id=params.highlight_id)
        return RawValue(value={"success": True, "highlight_id": params.highlight_id})


class CreateNoteInput(BaseModel):
    highlight_id: str = Field(..., min_length=1, description="The ID of the highlight to add a note to")
    note: str = Field(..., min_length=1, description="The note text to add")


class CreateNoteTool(ReadwiseTool):
    name = "create_note"
    description = "Add a note to an existing highlight"
    input_model = CreateNoteInput
    read_only = False

    async def _execute(self, params: CreateNoteInput) -> RawValue:
        return RawValue(value=await self.api.update_highlight(params.highlight_id, {"note": params.note}))
