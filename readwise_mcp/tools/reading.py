"""Reading progress tools."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from ..mcp.protocol import RawValue
from .base import ReadwiseTool

ReadingStatus = Literal["not_started", "in_progress", "completed"]

_STATUS_PERCENT = {"not_started": 0.0, "completed": 100.0}


def reading_status(progress: float) -> str:
    """Map Reader's 0..1 ``reading_progress`` onto a status label."""
    if progress <= 0:
        return "not_started"
    if progress >= 1:
        return "completed"
    return "in_progress"


def progress_summary(document: Dict[str, Any]) -> Dict[str, Any]:
    progress = float(document.get("reading_progress") or 0.0)
    return {
        "document_id": document.get("id"),
        "title": document.get("title"),
        "status": reading_status(progress),
        "percentage": round(progress * 100, 1),
        "last_read_at": document.get("last_opened_at"),
    }


class GetReadingProgressInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document to get reading progress for")


class GetReadingProgressTool(ReadwiseTool):
    name = "get_reading_progress"
    description = "Get the reading progress of a document"
    input_model = GetReadingProgressInput

    async def _execute(self, params: GetReadingProgressInput) -> RawValue:
        document = await self.api.get_document(params.document_id)
        return RawValue(value=progress_summary(document))


class UpdateReadingProgressInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document to update")
    status: ReadingStatus = Field(..., description="Reading status")
    percentage: Optional[float] = Field(default=None, ge=0, le=100, description="Reading progress percentage (0-100)")
    current_page: Optional[int] = Field(default=None, ge=0, description="Current page number")
    total_pages: Optional[int] = Field(default=None, ge=1, description="Total number of pages")
    last_read_at: Optional[str] = Field(default=None, description="Timestamp of when last read (ISO format)")


class UpdateReadingProgressTool(ReadwiseTool):
    name = "update_reading_progress"
    description = "Update the reading progress of a document"
    input_model = UpdateReadingProgressInput
    read_only = False

    async def _execute(self, params: UpdateReadingProgressInput) -> RawValue:
        percentage = params.percentage
        if percentage is None and params.current_page is not None and params.total_pages:
            percentage = min(params.current_page / params.total_pages * 100, 100.0)
        if percentage is None:
            percentage = _STATUS_PERCENT.get(params.status, 50.0)

        changes: Dict[str, Any] = {"reading_progress": round(percentage / 100, 4)}
        if params.last_read_at:
            changes["last_opened_at"] = params.last_read_at
        await self.api.update_document(params.document_id, changes)
        return RawValue(
            value={
                "document_id": params.document_id,
                "status": params.status,
                "percentage": round(percentage, 1),
            }
        )


class GetReadingListInput(BaseModel):
    status: Optional[ReadingStatus] = Field(default=None, description="Filter by reading status")
    category: Optional[str] = Field(default=None, description="Filter by document category")
    page: Optional[int] = Field(default=None, ge=1, description="Page number for pagination")
    page_size: Optional[int] = Field(default=20, ge=1, le=100, description="Number of results per page")


class GetReadingListTool(ReadwiseTool):
    name = "get_reading_list"
    description = "Get your reading list with progress for each document"
    input_model = GetReadingListInput

    async def _execute(self, params: GetReadingListInput) -> RawValue:
        listing = await self.api.list_documents(category=params.category)
        entries = [progress_summary(doc) for doc in listing.get("results", [])]
        if params.status:
            entries = [entry for entry in entries if entry["status"] == params.status]

        size = params.page_size or 20
        start = ((params.page or 1) - 1) * size
        return RawValue(value={"count": len(entries), "results": entries[start : start + size]})
