"""
Endpoint wrapper for the Readwise highlights (v2) and Reader (v3) APIs.

Each method maps onto a single upstream call. ``search_highlights`` and
``get_document_highlights`` filter a listing client-side, and the pool
helpers fetch one large page for the search tools to filter.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from .client import ReadwiseClient
from .errors import NotFoundError

logger = structlog.get_logger(__name__)

JSONDict = Dict[str, Any]

# Largest page the v2 highlights and books endpoints accept.
POOL_PAGE_SIZE = 1000


class ReadwiseAPI:
    """Typed access to the Readwise endpoints used by the tools."""

    def __init__(self, client: ReadwiseClient) -> None:
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    # Books and highlights (v2)

    async def get_books(self, page: Optional[int] = None, page_size: Optional[int] = None) -> JSONDict:
        return await self.client.request("GET", "/books/", params={"page": page, "page_size": page_size})

    async def get_highlights(
        self,
        book_id: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        search: Optional[str] = None,
    ) -> JSONDict:
        params = {"book_id": book_id, "page": page, "page_size": page_size}
        result = await self.client.request("GET", "/highlights/", params=params)
        if search and isinstance(result, dict):
            needle = search.lower()
            result["results"] = [h for h in result.get("results", []) if _highlight_matches(h, needle)]
        return result

    async def search_highlights(self, query: str, limit: Optional[int] = None) -> List[JSONDict]:
        """Return highlights whose text or note contains ``query`` (case-insensitive)."""
        listing = await self.client.request("GET", "/highlights/", params={"page_size": 100})
        needle = query.lower()
        matches = [h for h in (listing or {}).get("results", []) if _highlight_matches(h, needle)]
        logger.debug("Highlight search", matches=len(matches), limit=limit)
        return matches[:limit] if limit else matches

    async def get_highlight_pool(self) -> List[JSONDict]:
        """One large page of highlights, for filters the endpoint cannot express."""
        listing = await self.client.request("GET", "/highlights/", params={"page_size": POOL_PAGE_SIZE})
        return (listing or {}).get("results", [])

    async def get_book_index(self) -> Dict[str, JSONDict]:
        """Books keyed by stringified id."""
        listing = await self.get_books(page_size=POOL_PAGE_SIZE)
        return {str(book.get("id")): book for book in (listing or {}).get("results", [])}

    async def create_highlight(self, highlight: JSONDict) -> Any:
        return await self.client.request("POST", "/highlights/", json={"highlights": [highlight]})

    async def update_highlight(self, highlight_id: str, changes: JSONDict) -> Any:
        return await self.client.request("PATCH", f"/highlights/{highlight_id}/", json=changes)

    async def delete_highlight(self, highlight_id: str) -> None:
        await self.client.request("DELETE", f"/highlights/{highlight_id}/")

    # Reader documents (v3)

    async def get_tags(self) -> JSONDict:
        return await self.client.request("GET", "/tags/", api="v3")

    async def list_documents(
        self,
        *,
        location: Optional[str] = None,
        category: Optional[str] = None,
        updated_after: Optional[str] = None,
        page_cursor: Optional[str] = None,
        with_html_content: bool = False,
    ) -> JSONDict:
        params = {
            "location": location,
            "category": category,
            "updatedAfter": updated_after,
            "pageCursor": page_cursor,
            "withHtmlContent": "true" if with_html_content else None,
        }
        return await self.client.request("GET", "/list/", api="v3", params=params)

    async def get_document(self, document_id: str) -> JSONDict:
        listing = await self.client.request("GET", "/list/", api="v3", params={"id": document_id})
        results = (listing or {}).get("results") or []
        if not results:
            raise NotFoundError(f"Document not found: {document_id}", status_code=404)
        return results[0]

    async def get_document_highlights(self, document_id: str) -> List[JSONDict]:
        """Reader highlights are documents of category ``highlight`` pointing at their parent."""
        listing = await self.list_documents(category="highlight")
        return [item for item in (listing or {}).get("results", []) if item.get("parent_id") == document_id]

    async def save_document(self, document: JSONDict) -> Any:
        return await self.client.request("POST", "/save/", api="v3", json=document)

    async def update_document(self, document_id: str, changes: JSONDict) -> Any:
        return await self.client.request("PATCH", f"/update/{document_id}/", api="v3", json=changes)

    async def delete_document(self, document_id: str) -> None:
        await self.client.request("DELETE", f"/delete/{document_id}/", api="v3")


def _highlight_matches(highlight: JSONDict, needle: str) -> bool:
    text = (highlight.get("text") or "").lower()
    note = (highlight.get("note") or "").lower()
    return needle in text or needle in note
