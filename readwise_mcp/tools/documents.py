"""Reader document tools: listing, saving, updating, deleting and tagging."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

import structlog
from pydantic import BaseModel, Field

from ..mcp.base import ToolExecutionError
from ..mcp.protocol import RawValue
from .base import ReadwiseTool, compact, require_confirmation

logger = structlog.get_logger(__name__)

DELETE_CONFIRMATION = "I confirm deletion"

Location = Literal["new", "later", "archive", "feed"]


def tag_names(document: Dict[str, Any]) -> List[str]:
    """Reader returns tags as a mapping keyed by tag slug."""
    tags = document.get("tags") or {}
    if isinstance(tags, dict):
        return [tag.get("name", key) if isinstance(tag, dict) else key for key, tag in tags.items()]
    return list(tags)


class GetDocumentsInput(BaseModel):
    page: Optional[int] = Field(default=None, ge=1, description="Page number for pagination")
    page_size: Optional[int] = Field(default=None, ge=1, le=100, description="Number of results per page")
    location: Optional[Location] = Field(default=None, description="Filter by Reader location")
    category: Optional[str] = Field(default=None, description="Filter by document category")
    page_cursor: Optional[str] = Field(default=None, description="Cursor returned by a previous call")


class GetDocumentsTool(ReadwiseTool):
    name = "get_documents"
    description = "Get documents from Readwise Reader"
    input_model = GetDocumentsInput

    async def _execute(self, params: GetDocumentsInput) -> RawValue:
        listing = await self.api.list_documents(
            location=params.location,
            category=params.category,
            page_cursor=params.page_cursor,
        )
        if params.page_size:
            listing["results"] = listing.get("results", [])[: params.page_size]
        return RawValue(value=listing)


class GetTagsTool(ReadwiseTool):
    name = "get_tags"
    description = "Get all tags from your Readwise library"

    async def _execute(self, params: Dict[str, Any]) -> RawValue:
        return RawValue(value=await self.api.get_tags())


class DocumentTagsInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document")
    operation: Literal["get", "update", "add", "remove"] = Field(..., description="The operation to perform")
    tags: Optional[List[str]] = Field(default=None, description="Tags to set (for update operation)")
    tag: Optional[str] = Field(default=None, description="Tag to add/remove (for add/remove operations)")


class DocumentTagsTool(ReadwiseTool):
    name = "document_tags"
    description = "Get, update, add or remove tags on a document"
    input_model = DocumentTagsInput
    read_only = False

    async def _execute(self, params: DocumentTagsInput) -> RawValue:
        document = await self.api.get_document(params.document_id)
        current = tag_names(document)
        if params.operation == "get":
            return RawValue(value={"document_id": params.document_id, "tags": current})

        if params.operation == "update":
            if params.tags is None:
                raise ToolExecutionError("tags is required for the update operation", code="invalid_parameters")
            updated = list(params.tags)
        else:
            if not params.tag:
                raise ToolExecutionError(f"tag is required for the {params.operation} operation", code="invalid_parameters")
            if params.operation == "add":
                updated = current if params.tag in current else current + [params.tag]
            else:
                updated = [tag for tag in current if tag != params.tag]

        await self.api.update_document(params.document_id, {"tags": updated})
        return RawValue(value={"document_id": params.document_id, "tags": updated})


class SaveDocumentInput(BaseModel):
    url: str = Field(..., min_length=1, description="The URL of the content to save")
    title: Optional[str] = Field(default=None, description="Title override for the document")
    author: Optional[str] = Field(default=None, description="Author override for the document")
    html: Optional[str] = Field(default=None, description="HTML content if not scraping from URL")
    tags: Optional[List[str]] = Field(default=None, description="Tags to apply to the saved content")
    summary: Optional[str] = Field(default=None, description="Summary of the content")
    notes: Optional[str] = Field(default=None, description="Notes about the content")
    location: Optional[Location] = Field(default=None, description="Where to save the content")
    category: Optional[str] = Field(default=None, description="Category for the document (e.g. article, email)")
    published_date: Optional[str] = Field(default=None, description="Published date in ISO 8601 format")
    image_url: Optional[str] = Field(default=None, description="Cover image URL")


class SaveDocumentTool(ReadwiseTool):
    name = "save_document"
    description = "Save a URL or HTML content to Readwise Reader"
    input_model = SaveDocumentInput
    read_only = False
    idempotent = False

    async def _execute(self, params: SaveDocumentInput) -> RawValue:
        saved = await self.api.save_document(compact(params.model_dump()))
        logger.info("Document saved", url=params.url)
        return RawValue(value=saved)


class UpdateDocumentInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document to update")
    title: Optional[str] = Field(default=None, description="New title for the document")
    author: Optional[str] = Field(default=None, description="New author for the document")
    summary: Optional[str] = Field(default=None, description="New summary for the document")
    published_date: Optional[str] = Field(default=None, description="New published date in ISO 8601 format")
    image_url: Optional[str] = Field(default=None, description="New cover image URL")
    location: Optional[Location] = Field(default=None, description="New location")
    category: Optional[str] = Field(default=None, description="New category")
    tags: Optional[List[str]] = Field(default=None, description="New tags for the document")


class UpdateDocumentTool(ReadwiseTool):
    name = "update_document"
    description = "Update metadata of a Readwise Reader document"
    input_model = UpdateDocumentInput
    read_only = False

    async def _execute(self, params: UpdateDocumentInput) -> RawValue:
        changes = compact(params.model_dump(), exclude={"document_id"})
        if not changes:
            raise ToolExecutionError("No changes provided for document", code="invalid_parameters")
        return RawValue(value=await self.api.update_document(params.document_id, changes))


class DeleteDocumentInput(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document to delete")
    confirmation: str = Field(..., description='Type "I confirm deletion" to confirm')


class DeleteDocumentTool(ReadwiseTool):
    name = "delete_document"
    description = "Delete a document from Readwise Reader"
    input_model = DeleteDocumentInput
    read_only = False
    destructive = True

    async def _execute(self, params: DeleteDocumentInput) -> RawValue:
        require_confirmation(params.confirmation, DELETE_CONFIRMATION)
        await self.api.delete_document(params.document_id)
        logger.info("Document deleted", document_id=params.document_id)
        return RawValue(value={"success": True, "document_id": params.document_id})
