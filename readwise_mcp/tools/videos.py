"""Video tools. Videos are Reader documents with category ``video``."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from ..api import ReadwiseAPI
from ..mcp.base import ToolExecutionError
from ..mcp.protocol import RawValue
from .base import ReadwiseTool, compact
from .documents import tag_names
from .reading import progress_summary

logger = structlog.get_logger(__name__)

_TIMESTAMP = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{2})$")


def parse_timestamp(value: str) -> int:
    """Seconds for ``MM:SS``, ``H:MM:SS`` or a plain number of seconds."""
    text = value.strip()
    if text.isdigit():
        return int(text)
    match = _TIMESTAMP.match(text)
    if not match or int(match.group(3)) >= 60 or (match.group(1) and int(match.group(2)) >= 60):
        raise ToolExecutionError(
            f"Invalid timestamp {value!r}: expected MM:SS or H:MM:SS",
            code="invalid_parameters",
        )
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_timestamp(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


async def get_video_document(api: ReadwiseAPI, document_id: str) -> Dict[str, Any]:
    document = await api.get_document(document_id)
    if document.get("category") != "video":
        raise ToolExecutionError(f"Document {document_id} is not a video", code="not_a_video")
    return document


class GetVideosInput(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=100, description="Maximum number of videos to return (1-100)")
    pageCursor: Optional[str] = Field(default=None, description="Cursor for pagination")
    tags: Optional[List[str]] = Field(default=None, description="Filter videos by tags")
    platform: Optional[str] = Field(default=None, description="Filter videos by platform")


class GetVideosTool(ReadwiseTool):
    name = "get_videos"
    description = "Get videos saved in Readwise Reader"
    input_model = GetVideosInput

    async def _execute(self, params: GetVideosInput) -> RawValue:
        listing = await self.api.list_documents(category="video", page_cursor=params.pageCursor)
        videos = listing.get("results", [])
        if params.tags:
            wanted = set(params.tags)
            videos = [video for video in videos if wanted.intersection(tag_names(video))]
        if params.platform:
            platform = params.platform.lower()
            videos = [video for video in videos if platform in (video.get("source_url") or video.get("site_name") or "").lower()]
        if params.limit:
            videos = videos[: params.limit]
        return RawValue(
            value={
                "count": len(videos),
                "results": videos,
                "nextPageCursor": listing.get("nextPageCursor"),
            }
        )


class GetVideoInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The Readwise document ID for the video")


class GetVideoTool(ReadwiseTool):
    name = "get_video"
    description = "Get details of a single video"
    input_model = GetVideoInput

    async def _execute(self, params: GetVideoInput) -> RawValue:
        return RawValue(value=await get_video_document(self.api, params.document_id))


class CreateVideoHighlightInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the video")
    text: str = Field(..., min_length=1, description="The text of the highlight")
    timestamp: str = Field(..., min_length=1, description="Timestamp where the highlight occurs (e.g. 14:35)")
    note: Optional[str] = Field(default=None, description="Note about the highlight")


class CreateVideoHighlightTool(ReadwiseTool):
    name = "create_video_highlight"
    description = "Create a highlight anchored at a timestamp in a video"
    input_model = CreateVideoHighlightInput
    read_only = False
    idempotent = False

    async def _execute(self, params: CreateVideoHighlightInput) -> RawValue:
        seconds = parse_timestamp(params.timestamp)
        video = await get_video_document(self.api, params.document_id)
        highlight = compact(
            {
                "text": params.text,
                "note": params.note,
                "title": video.get("title"),
                "author": video.get("author"),
                "source_url": video.get("source_url") or video.get("url"),
                "category": "articles",
                "location": seconds,
                "location_type": "time_offset",
            }
        )
        created = await self.api.create_highlight(highlight)
        logger.info("Video highlight created", document_id=params.document_id, seconds=seconds)
        return RawValue(
            value={
                "document_id": params.document_id,
                "timestamp": format_timestamp(seconds),
                "seconds": seconds,
                "highlight": created,
            }
        )


class VideoDocumentInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the video")


class GetVideoHighlightsTool(ReadwiseTool):
    name = "get_video_highlights"
    description = "Get the highlights made on a video"
    input_model = VideoDocumentInput

    async def _execute(self, params: VideoDocumentInput) -> RawValue:
        await get_video_document(self.api, params.document_id)
        highlights = await self.api.get_document_highlights(params.document_id)
        return RawValue(value={"document_id": params.document_id, "count": len(highlights), "highlights": highlights})


class UpdateVideoPositionInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the video")
    position: float = Field(..., ge=0, description="Current playback position in seconds")
    duration: float = Field(..., gt=0, description="Total duration of the video in seconds")


class UpdateVideoPositionTool(ReadwiseTool):
    name = "update_video_position"
    description = "Record the playback position of a video"
    input_model = UpdateVideoPositionInput
    read_only = False

    async def _execute(self, params: UpdateVideoPositionInput) -> RawValue:
        progress = min(params.position / params.duration, 1.0)
        await self.api.update_document(params.document_id, {"reading_progress": round(progress, 4)})
        return RawValue(
            value={
                "document_id": params.document_id,
                "position": params.position,
                "duration": params.duration,
                "timestamp": format_timestamp(int(min(params.position, params.duration))),
                "percentage": round(progress * 100, 1),
            }
        )


class GetVideoPositionTool(ReadwiseTool):
    name = "get_video_position"
    description = "Get the playback progress of a video"
    input_model = VideoDocumentInput

    async def _execute(self, params: VideoDocumentInput) -> RawValue:
        video = await get_video_document(self.api, params.document_id)
        return RawValue(value=progress_summary(video))
