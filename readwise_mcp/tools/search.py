"""
Structured highlight search: combined filters, tag search and date ranges.

The v2 highlights endpoint cannot filter on most of these fields, so the
tools pull one large page of highlights and filter, sort and paginate it
locally.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Literal, Optional

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..mcp.base import ToolExecutionError
from ..mcp.protocol import RawValue
from .base import ReadwiseTool

logger = structlog.get_logger(__name__)

DateField = Literal["created_at", "updated_at", "highlighted_at"]
SortField = Literal["created_at", "updated_at", "highlighted_at", "location"]

# v2 highlights name the update timestamp "updated".
_FIELD_KEYS = {
    "created_at": ("created_at",),
    "updated_at": ("updated_at", "updated"),
    "highlighted_at": ("highlighted_at",),
    "location": ("location",),
}

_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def parse_bound(value: str, *, end: bool = False) -> datetime:
    """Parse a user-supplied ISO bound. A bare date as an end bound covers the whole day."""
    text = value.strip()
    try:
        if len(text) == 10:
            day = _DATE.validate_python(text)
            return datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)
        return _as_utc(_DATETIME.validate_python(text))
    except ValidationError as exc:
        raise ToolExecutionError(f"Invalid date: {value!r}", code="invalid_parameters") from exc


def field_value(highlight: Dict[str, Any], field: str) -> Any:
    for key in _FIELD_KEYS[field]:
        value = highlight.get(key)
        if value is not None and value != "":
            return value
    return None


def highlight_time(highlight: Dict[str, Any], field: str) -> Optional[datetime]:
    raw = field_value(highlight, field)
    if raw is None:
        return None
    try:
        return _as_utc(_DATETIME.validate_python(raw))
    except ValidationError:
        logger.debug("Unparseable highlight timestamp", highlight_id=highlight.get("id"), field=field)
        return None


def highlight_tags(highlight: Dict[str, Any]) -> List[str]:
    """Lower-cased tag names; v2 returns tags as ``[{"id": .., "name": ..}]``."""
    names = []
    for tag in highlight.get("tags") or []:
        name = tag.get("name") if isinstance(tag, dict) else tag
        if name:
            names.append(str(name).lower())
    return names


def in_range(moment: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is None and end is None:
        return True
    if moment is None:
        return False
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def resolve_range(start: Optional[str], end: Optional[str]) -> tuple[Optional[datetime], Optional[datetime]]:
    lower = parse_bound(start) if start else None
    upper = parse_bound(end, end=True) if end else None
    if lower and upper and lower > upper:
        raise ToolExecutionError("Start date must not be after end date", code="invalid_parameters")
    return lower, upper


def sort_highlights(highlights: List[Dict[str, Any]], field: str, descending: bool) -> List[Dict[str, Any]]:
    """Sort on ``field``; highlights missing it always go last."""
    if field == "location":
        keyed = [(field_value(h, field), h) for h in highlights]
    else:
        keyed = [(highlight_time(h, field), h) for h in highlights]
    present = [(key, h) for key, h in keyed if key is not None]
    missing = [h for key, h in keyed if key is None]
    try:
        present.sort(key=lambda pair: pair[0], reverse=descending)
    except TypeError as exc:
        raise ToolExecutionError(f"Cannot sort highlights by {field}", code="invalid_parameters") from exc
    return [h for _, h in present] + missing


def paginate(items: List[Dict[str, Any]], page: int, page_size: int) -> Dict[str, Any]:
    start = (page - 1) * page_size
    return {
        "count": len(items),
        "page": page,
        "page_size": page_size,
        "results": items[start : start + page_size],
    }


class DateRange(BaseModel):
    start: Optional[str] = Field(default=None, description="Start date in ISO format")
    end: Optional[str] = Field(default=None, description="End date in ISO format")


class LocationRange(BaseModel):
    start: Optional[float] = Field(default=None, description="Start location")
    end: Optional[float] = Field(default=None, description="End location")


class AdvancedSearchInput(BaseModel):
    query: Optional[str] = Field(default=None, description="Search query")
    book_ids: Optional[List[str]] = Field(default=None, description="List of book IDs to filter by")
    tags: Optional[List[str]] = Field(default=None, description="List of tags to filter by")
    categories: Optional[List[str]] = Field(default=None, description="List of categories to filter by")
    date_range: Optional[DateRange] = Field(default=None, description="Date range filter on highlighted_at")
    location_range: Optional[LocationRange] = Field(default=None, description="Location range filter")
    has_note: Optional[bool] = Field(default=None, description="Filter highlights that have notes")
    sort_by: Optional[SortField] = Field(default=None, description="Field to sort by")
    sort_order: Literal["asc", "desc"] = Field(default="desc", description="Sort order")
    page: int = Field(default=1, ge=1, description="Page number for pagination")
    page_size: int = Field(default=20, ge=1, le=100, description="Number of results per page")


class AdvancedSearchTool(ReadwiseTool):
    name = "advanced_search"
    description = "Search highlights with combined filters for text, books, tags, categories, dates, location and notes"
    input_model = AdvancedSearchInput

    async def _execute(self, params: AdvancedSearchInput) -> RawValue:
        start, end = resolve_range(
            params.date_range.start if params.date_range else None,
            params.date_range.end if params.date_range else None,
        )
        highlights = await self.api.get_highlight_pool()

        if params.query:
            needle = params.query.lower()
            highlights = [
                h for h in highlights if needle in (h.get("text") or "").lower() or needle in (h.get("note") or "").lower()
            ]
        if params.book_ids:
            wanted_books = set(params.book_ids)
            highlights = [h for h in highlights if str(h.get("book_id")) in wanted_books]
        if params.tags:
            wanted_tags = {tag.lower() for tag in params.tags}
            highlights = [h for h in highlights if wanted_tags.intersection(highlight_tags(h))]
        if params.categories:
            books = await self.api.get_book_index()
            wanted_categories = {category.lower() for category in params.categories}
            highlights = [
                h
                for h in highlights
                if (books.get(str(h.get("book_id")), {}).get("category") or "").lower() in wanted_categories
            ]
        if start or end:
            highlights = [h for h in highlights if in_range(highlight_time(h, "highlighted_at"), start, end)]
        if params.location_range:
            low, high = params.location_range.start, params.location_range.end
            highlights = [
                h
                for h in highlights
                if isinstance(h.get("location"), (int, float))
                and (low is None or h["location"] >= low)
                and (high is None or h["location"] <= high)
            ]
        if params.has_note is not None:
            highlights = [h for h in highlights if bool((h.get("note") or "").strip()) is params.has_note]
        if params.sort_by:
            highlights = sort_highlights(highlights, params.sort_by, params.sort_order == "desc")

        logger.debug("Advanced search", matches=len(highlights))
        return RawValue(value=paginate(highlights, params.page, params.page_size))


class SearchByTagInput(BaseModel):
    tags: List[str] = Field(..., min_length=1, description="List of tags to search for")
    match_all: bool = Field(default=False, description="Match all tags (AND) or any tag (OR)")
    page: int = Field(default=1, ge=1, description="Page number for pagination")
    page_size: int = Field(default=20, ge=1, le=100, description="Number of results per page")


class SearchByTagTool(ReadwiseTool):
    name = "search_by_tag"
    description = "Find highlights carrying any or all of the given tags"
    input_model = SearchByTagInput

    async def _execute(self, params: SearchByTagInput) -> RawValue:
        wanted = {tag.lower() for tag in params.tags}
        matches = []
        for highlight in await self.api.get_highlight_pool():
            tags = set(highlight_tags(highlight))
            if (wanted <= tags) if params.match_all else (wanted & tags):
                matches.append(highlight)
        return RawValue(value=paginate(matches, params.page, params.page_size))


class SearchByDateInput(BaseModel):
    start_date: Optional[str] = Field(default=None, description="Start date in ISO format (e.g. 2024-01-01)")
    end_date: Optional[str] = Field(default=None, description="End date in ISO format (e.g. 2024-12-31)")
    date_field: DateField = Field(default="highlighted_at", description="Which date field to search on")
    page: int = Field(default=1, ge=1, description="Page number for pagination")
    page_size: int = Field(default=20, ge=1, le=100, description="Number of results per page")


class SearchByDateTool(ReadwiseTool):
    name = "search_by_date"
    description = "Find highlights whose date falls within a range, newest first"
    input_model = SearchByDateInput

    async def _execute(self, params: SearchByDateInput) -> RawValue:
        start, end = resolve_range(params.start_date, params.end_date)
        highlights = await self.api.get_highlight_pool()
        matches = [h for h in highlights if in_range(highlight_time(h, params.date_field), start, end)]
        matches = sort_highlights(matches, params.date_field, descending=True)
        return RawValue(value=paginate(matches, params.page, params.page_size))
