"""Built-in Readwise tools."""

from typing import List

from ..api import ReadwiseAPI
from ..mcp.base import BaseTool
from .books import GetBooksTool, GetRecentContentTool
from .bulk import BulkDeleteDocumentsTool, BulkSaveDocumentsTool, BulkTagsTool, BulkUpdateDocumentsTool
from .documents import (
    DeleteDocumentTool,
    DocumentTagsTool,
    GetDocumentsTool,
    GetTagsTool,
    SaveDocumentTool,
    UpdateDocumentTool,
)
from .highlights import (
    CreateHighlightTool,
    CreateNoteTool,
    DeleteHighlightTool,
    GetHighlightsTool,
    SearchHighlightsTool,
    UpdateHighlightTool,
)
from .reading import GetReadingListTool, GetReadingProgressTool, UpdateReadingProgressTool
from .search import AdvancedSearchTool, SearchByDateTool, SearchByTagTool
from .videos import (
    CreateVideoHighlightTool,
    GetVideoHighlightsTool,
    GetVideoPositionTool,
    GetVideosTool,
    GetVideoTool,
    UpdateVideoPositionTool,
)

TOOL_CLASSES = (
    GetHighlightsTool,
    GetBooksTool,
    GetDocumentsTool,
    SearchHighlightsTool,
    GetTagsTool,
    DocumentTagsTool,
    BulkTagsTool,
    GetReadingProgressTool,
    UpdateReadingProgressTool,
    GetReadingListTool,
    CreateHighlightTool,
    UpdateHighlightTool,
    DeleteHighlightTool,
    CreateNoteTool,
    AdvancedSearchTool,
    SearchByTagTool,
    SearchByDateTool,
    GetVideosTool,
    GetVideoTool,
    CreateVideoHighlightTool,
    GetVideoHighlightsTool,
    UpdateVideoPositionTool,
    GetVideoPositionTool,
    SaveDocumentTool,
    UpdateDocumentTool,
    DeleteDocumentTool,
    GetRecentContentTool,
    BulkSaveDocumentsTool,
    BulkUpdateDocumentsTool,
    BulkDeleteDocumentsTool,
)


def build_tools(api: ReadwiseAPI) -> List[BaseTool]:
    """Instantiate every built-in tool against ``api``."""
    return [tool_cls(api) for tool_cls in TOOL_CLASSES]


__all__ = ["TOOL_CLASSES", "build_tools"]
