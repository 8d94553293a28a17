"""
Bulk Reader document tools.

Items are processed one at a time so the client's rate-limit backoff applies
between them. A failure on one item is recorded in that item's result and
the remaining items still run.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from ..api import ReadwiseError
from ..mcp.base import ToolExecutionError
from ..mcp.protocol import RawValue
from .base import ReadwiseTool, compact, require_confirmation
from .documents import Location, tag_names

logger = structlog.get_logger(__name__)

TAGS_CONFIRMATION = "I confirm these tag changes"
SAVE_CONFIRMATION = "I confirm saving these items"
UPDATE_CONFIRMATION = "I confirm these updates"
DELETE_CONFIRMATION = "I confirm deletion of these documents"


async def run_each(
    operation: str,
    keys: List[str],
    action: Callable[[int], Awaitable[Any]],
) -> Dict[str, Any]:
    """Run ``action`` for every index and summarise per-item outcomes."""
    results: List[Dict[str, Any]] = []
    for index, key in enumerate(keys):
        try:
            outcome = await action(index)
        except (ReadwiseError, ToolExecutionError) as exc:
            logger.warning("Bulk item failed", operation=operation, item=key, error=str(exc))
            results.append({"id": key, "success": False, "error": {"type": exc.type, "details": exc.details}})
            continue
        results.append({"id": key, "success": True, "result": outcome})

    succeeded = sum(1 for result in results if result["success"])
    logger.info("Bulk operation finished", operation=operation, succeeded=succeeded, failed=len(results) - succeeded)
    return {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded, "results": results}


class BulkTagsInput(BaseModel):
    document_ids: List[str] = Field(..., min_length=1, description="IDs of the documents to tag")
    tags: List[str] = Field(..., min_length=1, description="Tags to add to all specified documents")
    replace_existing: bool = Field(default=False, description="Replace existing tags (true) or append (false)")
    confirmation: str = Field(..., description=f'Must be "{TAGS_CONFIRMATION}" to proceed')


class BulkTagsTool(ReadwiseTool):
    name = "bulk_tags"
    description = "Add or replace tags on several documents at once"
    input_model = BulkTagsInput
    read_only = False

    async def _execute(self, params: BulkTagsInput) -> RawValue:
        require_confirmation(params.confirmation, TAGS_CONFIRMATION)

        async def tag_document(index: int) -> Dict[str, Any]:
            document_id = params.document_ids[index]
            if params.replace_existing:
                updated = list(dict.fromkeys(params.tags))
            else:
                current = tag_names(await self.api.get_document(document_id))
                updated = list(dict.fromkeys(current + params.tags))
            await self.api.update_document(document_id, {"tags": updated})
            return {"tags": updated}

        return RawValue(value=await run_each(self.name, params.document_ids, tag_document))


class BulkSaveItem(BaseModel):
    url: str = Field(..., min_length=1, description="The URL of the content to save")
    title: Optional[str] = Field(default=None, description="Title override")
    author: Optional[str] = Field(default=None, description="Author override")
    html: Optional[str] = Field(default=None, description="HTML content")
    tags: Optional[List[str]] = Field(default=None, description="Tags")
    summary: Optional[str] = Field(default=None, description="Summary")
    notes: Optional[str] = Field(default=None, description="Notes")
    location: Optional[Location] = Field(default=None, description="Location")


class BulkSaveDocumentsInput(BaseModel):
    items: List[BulkSaveItem] = Field(..., min_length=1, description="Array of documents to save")
    confirmation: str = Field(..., description=f'Type "{SAVE_CONFIRMATION}" to confirm')


class BulkSaveDocumentsTool(ReadwiseTool):
    name = "bulk_save_documents"
    description = "Save several URLs to Readwise Reader"
    input_model = BulkSaveDocumentsInput
    read_only = False
    idempotent = False

    async def _execute(self, params: BulkSaveDocumentsInput) -> RawValue:
        require_confirmation(params.confirmation, SAVE_CONFIRMATION)

        async def save(index: int) -> Any:
            return await self.api.save_document(compact(params.items[index].model_dump()))

        return RawValue(value=await run_each(self.name, [item.url for item in params.items], save))


class BulkUpdateItem(BaseModel):
    document_id: str = Field(..., min_length=1, description="The ID of the document to update")
    title: Optional[str] = Field(default=None, description="New title")
    author: Optional[str] = Field(default=None, description="New author")
    summary: Optional[str] = Field(default=None, description="New summary")
    tags: Optional[List[str]] = Field(default=None, description="New tags")
    location: Optional[Location] = Field(default=None, description="New location")
    category: Optional[str] = Field(default=None, description="New category")


class BulkUpdateDocumentsInput(BaseModel):
    updates: List[BulkUpdateItem] = Field(..., min_length=1, description="Array of document updates")
    confirmation: str = Field(..., description=f'Type "{UPDATE_CONFIRMATION}" to confirm')


class BulkUpdateDocumentsTool(ReadwiseTool):
    name = "bulk_update_documents"
    description = "Update metadata on several Readwise Reader documents"
    input_model = BulkUpdateDocumentsInput
    read_only = False

    async def _execute(self, params: BulkUpdateDocumentsInput) -> RawValue:
        require_confirmation(params.confirmation, UPDATE_CONFIRMATION)

        async def update(index: int) -> Any:
            item = params.updates[index]
            changes = compact(item.model_dump(), exclude={"document_id"})
            if not changes:
                raise ToolExecutionError(f"No changes provided for document {item.document_id}", code="invalid_parameters")
            return await self.api.update_document(item.document_id, changes)

        keys = [item.document_id for item in params.updates]
        return RawValue(value=await run_each(self.name, keys, update))


class BulkDeleteDocumentsInput(BaseModel):
    document_ids: List[str] = Field(..., min_length=1, description="Array of document IDs to delete")
    confirmation: str = Field(..., description=f'Type "{DELETE_CONFIRMATION}" to confirm')


class BulkDeleteDocumentsTool(ReadwiseTool):
    name = "bulk_delete_documents"
    description = "Delete several documents from Readwise Reader"
    input_model = BulkDeleteDocumentsInput
    read_only = False
    destructive = True

    async def _execute(self, params: BulkDeleteDocumentsInput) -> RawValue:
        require_confirmation(params.confirmation, DELETE_CONFIRMATION)

        async def delete(index: int) -> Dict[str, Any]:
            await self.api.delete_document(params.document_ids[index])
            return {"deleted": True}

        return RawValue(value=await run_each(self.name, params.document_ids, delete))
