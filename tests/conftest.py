"""Shared fixtures: sample operations, registries and a fake Readwise backend."""

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from pydantic import BaseModel, Field

from readwise_mcp.api import AuthenticationError, ReadwiseAPI, ReadwiseClient
from readwise_mcp.core.config import Settings
from readwise_mcp.mcp.base import BasePrompt, BaseTool, ToolExecutionError
from readwise_mcp.mcp.dispatcher import Dispatcher
from readwise_mcp.mcp.protocol import ContentEnvelope, RawValue
from readwise_mcp.mcp.registry import PromptRegistry, ToolRegistry


class EchoInput(BaseModel):
    message: str = Field(..., min_length=1)
    times: int = Field(default=1, ge=1, le=5)


class EchoTool(BaseTool):
    name = "echo"
    description = "Echo the message back"
    input_model = EchoInput

    def __init__(self) -> None:
        self.calls = 0

    async def _execute(self, params: EchoInput) -> RawValue:
        self.calls += 1
        return RawValue(value={"echo": params.message * params.times})


class ContentTool(BaseTool):
    name = "content"
    description = "Returns content-shaped output"

    async def _execute(self, params: Dict[str, Any]) -> ContentEnvelope:
        return ContentEnvelope.text(f"hello {params.get('who', 'world')}")


class FailingTool(BaseTool):
    """Raises whatever exception it was built with."""

    name = "failing"
    description = "Always fails"

    def __init__(self, exc: Optional[Exception] = None) -> None:
        self.exc = exc or ToolExecutionError("upstream exploded", code="upstream_failure")

    async def _execute(self, params: Dict[str, Any]) -> RawValue:
        raise self.exc


class AuthFailingTool(FailingTool):
    name = "needs_auth"

    def __init__(self) -> None:
        super().__init__(AuthenticationError("Readwise rejected the API key", status_code=401))


class PlainFailingTool(FailingTool):
    name = "plain_failure"

    def __init__(self) -> None:
        super().__init__(RuntimeError("boom"))


class GreetingInput(BaseModel):
    name: str = Field(..., description="Who to greet")


class GreetingPrompt(BasePrompt):
    name = "greeting"
    description = "Greets someone"
    input_model = GreetingInput

    async def _execute(self, params: GreetingInput) -> ContentEnvelope:
        return ContentEnvelope.text(f"Say hello to {params.name}")


@pytest.fixture
def echo_tool():
    return EchoTool()


@pytest.fixture
def tool_registry(echo_tool):
    registry = ToolRegistry()
    registry.register(echo_tool)
    registry.register(ContentTool())
    registry.register(FailingTool())
    registry.register(AuthFailingTool())
    registry.register(PlainFailingTool())
    return registry


@pytest.fixture
def prompt_registry():
    registry = PromptRegistry()
    registry.register(GreetingPrompt())
    return registry


@pytest.fixture
def dispatcher(tool_registry, prompt_registry):
    return Dispatcher(tool_registry, prompt_registry)


class FakeReadwise:
    """
    Minimal in-memory stand-in for the Readwise HTTP API, served through
    ``httpx.MockTransport``. Records every request it sees.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.highlights = [
            {
                "id": 1, "text": "Simplicity is prerequisite for reliability", "note": "Dijkstra", "book_id": 10,
                "updated": "2024-03-01T00:00:00Z", "highlighted_at": "2024-01-15T10:00:00Z", "location": 12,
                "tags": [{"id": 1, "name": "favorite"}],
            },
            {
                "id": 2, "text": "Premature optimization is the root of all evil", "note": "", "book_id": 10,
                "updated": "2024-03-03T00:00:00Z", "highlighted_at": "2024-02-20T18:30:00Z", "location": 40,
                "tags": [{"id": 1, "name": "favorite"}, {"id": 2, "name": "Performance"}],
            },
            {
                "id": 3, "text": "Programs must be written for people to read", "note": "SICP", "book_id": 11,
                "updated": "2024-03-02T00:00:00Z", "highlighted_at": "2024-02-29T23:00:00Z", "location": 5,
                "tags": [],
            },
        ]
        self.books = [
            {"id": 10, "title": "Essays", "category": "articles", "updated": "2024-02-01T00:00:00Z"},
            {"id": 11, "title": "SICP", "category": "books", "updated": "2024-03-04T00:00:00Z"},
        ]
        self.documents = [
            {"id": "doc-1", "title": "An article", "category": "article", "reading_progress": 0.5, "tags": {"ai": {"name": "ai"}}},
            {"id": "doc-2", "title": "A talk", "category": "video", "reading_progress": 0, "tags": {}, "source_url": "https://youtube.com/watch?v=x"},
            {"id": "doc-3", "title": "Done", "category": "article", "reading_progress": 1, "tags": {}},
        ]
        self.overrides: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for prefix, handler in self.overrides.items():
            if path.startswith(prefix):
                return handler(request)

        if path == "/api/v2/books/":
            return httpx.Response(200, json={"count": len(self.books), "results": self.books})
        if path == "/api/v2/highlights/" and request.method == "GET":
            results = self.highlights
            book_id = request.url.params.get("book_id")
            if book_id:
                results = [h for h in results if str(h["book_id"]) == book_id]
            return httpx.Response(200, json={"count": len(results), "results": results})
        if path == "/api/v2/highlights/" and request.method == "POST":
            return httpx.Response(200, json=[{"id": 99, "title": "Essays"}])
        if path.startswith("/api/v2/highlights/") and request.method == "PATCH":
            return httpx.Response(200, json={"id": int(path.split("/")[-2]), "updated": True})
        if path.startswith("/api/v2/highlights/") and request.method == "DELETE":
            return httpx.Response(204)
        if path == "/api/v3/tags/":
            return httpx.Response(200, json={"count": 1, "results": [{"key": "ai", "name": "ai"}]})
        if path == "/api/v3/list/":
            results = self.documents
            doc_id = request.url.params.get("id")
            category = request.url.params.get("category")
            if doc_id:
                results = [d for d in results if d["id"] == doc_id]
            if category:
                results = [d for d in results if d["category"] == category]
            return httpx.Response(200, json={"count": len(results), "nextPageCursor": None, "results": results})
        if path == "/api/v3/save/":
            return httpx.Response(201, json={"id": "doc-new", "url": "https://read.readwise.io/doc-new"})
        if path.startswith("/api/v3/update/"):
            return httpx.Response(200, json={"id": path.split("/")[-2]})
        if path.startswith("/api/v3/delete/"):
            return httpx.Response(204)
        return httpx.Response(404, json={"detail": "Not found."})


@pytest.fixture
def fake_readwise():
    return FakeReadwise()


@pytest.fixture
def readwise_client(fake_readwise):
    return ReadwiseClient("test-key", transport=httpx.MockTransport(fake_readwise), max_retries=2)


@pytest.fixture
def readwise_api(readwise_client):
    return ReadwiseAPI(readwise_client)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        transport="sse",
        readwise_api_key="test-key",
        server_auth_token=None,
        cors_allowed_origins="*",
    )
