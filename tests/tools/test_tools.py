"""
Tests for the built-in Readwise tools.

Tools run against the in-memory FakeReadwise backend through the real
dispatcher so that envelope shapes are checked end to end.
"""

import json

import httpx
import pytest

from readwise_mcp.mcp.dispatcher import Dispatcher
from readwise_mcp.mcp.registry import PromptRegistry, ToolRegistry
from readwise_mcp.tools import TOOL_CLASSES, build_tools


@pytest.fixture
def tools_dispatcher(readwise_api):
    registry = ToolRegistry()
    for tool in build_tools(readwise_api):
        registry.register(tool)
    return Dispatcher(registry, PromptRegistry())


async def call(dispatcher, name, **parameters):
    return await dispatcher.dispatch(
        {"type": "tool_call", "name": name, "parameters": parameters, "request_id": f"{name}-1"}
    )


def payload(response):
    assert "error" not in response, response
    return json.loads(response["content"][0]["text"])


class TestCatalog:
    def test_tool_names_are_unique(self):
        names = [tool_cls.name for tool_cls in TOOL_CLASSES]
        assert len(names) == len(set(names)) == 30

    def test_destructive_annotations(self, readwise_api):
        specs = {tool.name: tool.spec() for tool in build_tools(readwise_api)}

        assert specs["delete_highlight"].annotations == {
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
        }
        assert specs["create_highlight"].annotations["idempotentHint"] is False
        assert specs["get_books"].annotations["readOnlyHint"] is True
        assert specs["get_tags"].parameters == {"type": "object", "properties": {}}


class TestReadTools:
    @pytest.mark.asyncio
    async def test_get_highlights(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_highlights", book_id="11"))

        assert [h["id"] for h in result["results"]] == [3]

    @pytest.mark.asyncio
    async def test_get_highlights_rejects_large_page_size(self, tools_dispatcher):
        response = await call(tools_dispatcher, "get_highlights", page_size=500)

        assert response["error"]["type"] == "validation"
        assert response["error"]["details"]["errors"][0].startswith("page_size: ")

    @pytest.mark.asyncio
    async def test_get_books(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_books"))

        assert result["count"] == 2

    @pytest.mark.asyncio
    async def test_search_highlights_requires_query(self, tools_dispatcher):
        response = await call(tools_dispatcher, "search_highlights")

        assert response["error"]["details"]["code"] == "invalid_parameters"

    @pytest.mark.asyncio
    async def test_get_tags(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_tags"))

        assert result["results"][0]["name"] == "ai"

    @pytest.mark.asyncio
    async def test_get_documents(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_documents", category="article", page_size=1))

        assert len(result["results"]) == 1
        assert result["results"][0]["category"] == "article"

    @pytest.mark.asyncio
    async def test_get_recent_content_orders_by_update(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_recent_content", limit=3))

        assert result["count"] == 3
        assert [(item["kind"], item["id"]) for item in result["results"]] == [
            ("book", 11),
            ("highlight", 2),
            ("highlight", 3),
        ]

    @pytest.mark.asyncio
    async def test_get_recent_content_highlights_only(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_recent_content", content_type="highlights"))

        assert {item["kind"] for item in result["results"]} == {"highlight"}


class TestReadingProgress:
    @pytest.mark.asyncio
    async def test_get_reading_progress(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_reading_progress", document_id="doc-1"))

        assert result["status"] == "in_progress"
        assert result["percentage"] == 50.0

    @pytest.mark.asyncio
    async def test_update_reading_progress_from_pages(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(
                tools_dispatcher,
                "update_reading_progress",
                document_id="doc-1",
                status="in_progress",
                current_page=25,
                total_pages=100,
            )
        )

        assert result["percentage"] == 25.0
        request = fake_readwise.requests[-1]
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"reading_progress": 0.25}

    @pytest.mark.asyncio
    async def test_update_reading_progress_completed(self, tools_dispatcher, fake_readwise):
        payload(await call(tools_dispatcher, "update_reading_progress", document_id="doc-1", status="completed"))

        assert json.loads(fake_readwise.requests[-1].content) == {"reading_progress": 1.0}

    @pytest.mark.asyncio
    async def test_get_reading_list_filters_status(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_reading_list", status="completed"))

        assert [entry["document_id"] for entry in result["results"]] == ["doc-3"]


class TestWriteTools:
    @pytest.mark.asyncio
    async def test_create_highlight(self, tools_dispatcher, fake_readwise):
        payload(await call(tools_dispatcher, "create_highlight", text="New idea", book_id="10", tags=["x"]))

        body = json.loads(fake_readwise.requests[-1].content)
        assert body == {"highlights": [{"text": "New idea", "tags": ["x"], "book_id": "10"}]}

    @pytest.mark.asyncio
    async def test_update_highlight_requires_changes(self, tools_dispatcher):
        response = await call(tools_dispatcher, "update_highlight", highlight_id="1")

        assert response["error"]["type"] == "execution"
        assert response["error"]["details"]["code"] == "invalid_parameters"

    @pytest.mark.asyncio
    async def test_create_note(self, tools_dispatcher, fake_readwise):
        payload(await call(tools_dispatcher, "create_note", highlight_id="2", note="remember this"))

        request = fake_readwise.requests[-1]
        assert request.url.path == "/api/v2/highlights/2/"
        assert json.loads(request.content) == {"note": "remember this"}

    @pytest.mark.asyncio
    async def test_save_document(self, tools_dispatcher, fake_readwise):
        result = payload(await call(tools_dispatcher, "save_document", url="https://example.com", location="later"))

        assert result["id"] == "doc-new"
        assert json.loads(fake_readwise.requests[-1].content) == {"url": "https://example.com", "location": "later"}

    @pytest.mark.asyncio
    async def test_save_document_rejects_unknown_location(self, tools_dispatcher):
        response = await call(tools_dispatcher, "save_document", url="https://example.com", location="inbox")

        assert response["error"]["details"]["code"] == "invalid_parameters"

    @pytest.mark.asyncio
    async def test_update_document(self, tools_dispatcher, fake_readwise):
        payload(await call(tools_dispatcher, "update_document", document_id="doc-1", title="Renamed"))

        request = fake_readwise.requests[-1]
        assert request.url.path == "/api/v3/update/doc-1/"
        assert json.loads(request.content) == {"title": "Renamed"}


class TestDocumentTags:
    @pytest.mark.asyncio
    async def test_get(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "document_tags", document_id="doc-1", operation="get"))

        assert result == {"document_id": "doc-1", "tags": ["ai"]}

    @pytest.mark.asyncio
    async def test_add(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(tools_dispatcher, "document_tags", document_id="doc-1", operation="add", tag="ml")
        )

        assert result["tags"] == ["ai", "ml"]
        assert json.loads(fake_readwise.requests[-1].content) == {"tags": ["ai", "ml"]}

    @pytest.mark.asyncio
    async def test_remove(self, tools_dispatcher):
        result = payload(
            await call(tools_dispatcher, "document_tags", document_id="doc-1", operation="remove", tag="ai")
        )

        assert result["tags"] == []

    @pytest.mark.asyncio
    async def test_add_without_tag(self, tools_dispatcher):
        response = await call(tools_dispatcher, "document_tags", document_id="doc-1", operation="add")

        assert response["error"]["details"]["code"] == "invalid_parameters"

    @pytest.mark.asyncio
    async def test_unknown_document(self, tools_dispatcher):
        response = await call(tools_dispatcher, "document_tags", document_id="doc-404", operation="get")

        assert response["error"]["type"] == "execution"
        assert response["error"]["details"]["code"] == "not_found"


class TestDestructiveTools:
    @pytest.mark.asyncio
    async def test_delete_highlight_requires_confirmation(self, tools_dispatcher, fake_readwise):
        response = await call(tools_dispatcher, "delete_highlight", highlight_id="1", confirmation="yes")

        assert response["error"]["details"]["code"] == "confirmation_required"
        assert not any(request.method == "DELETE" for request in fake_readwise.requests)

    @pytest.mark.asyncio
    async def test_delete_highlight(self, tools_dispatcher, fake_readwise):
        result = payload(await call(tools_dispatcher, "delete_highlight", highlight_id="1", confirmation="DELETE"))

        assert result == {"success": True, "highlight_id": "1"}
        assert fake_readwise.requests[-1].method == "DELETE"

    @pytest.mark.asyncio
    async def test_delete_document_requires_exact_phrase(self, tools_dispatcher):
        response = await call(tools_dispatcher, "delete_document", document_id="doc-1", confirmation="DELETE")

        assert response["error"]["details"]["code"] == "confirmation_required"

    @pytest.mark.asyncio
    async def test_delete_document(self, tools_dispatcher, fake_readwise):
        payload(
            await call(tools_dispatcher, "delete_document", document_id="doc-1", confirmation="I confirm deletion")
        )

        assert fake_readwise.requests[-1].url.path == "/api/v3/delete/doc-1/"


class TestVideos:
    @pytest.mark.asyncio
    async def test_get_videos(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_videos", platform="youtube"))

        assert [video["id"] for video in result["results"]] == ["doc-2"]

    @pytest.mark.asyncio
    async def test_get_video(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_video", document_id="doc-2"))

        assert result["title"] == "A talk"

    @pytest.mark.asyncio
    async def test_get_video_rejects_articles(self, tools_dispatcher):
        response = await call(tools_dispatcher, "get_video", document_id="doc-1")

        assert response["error"]["details"]["code"] == "not_a_video"


class TestSearchTools:
    @pytest.mark.asyncio
    async def test_advanced_search_query_reads_one_large_page(self, tools_dispatcher, fake_readwise):
        result = payload(await call(tools_dispatcher, "advanced_search", query="SIMPLICITY"))

        assert [h["id"] for h in result["results"]] == [1]
        assert fake_readwise.requests[0].url.params["page_size"] == "1000"

    @pytest.mark.asyncio
    async def test_advanced_search_tags_ignore_case(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "advanced_search", tags=["performance"]))

        assert [h["id"] for h in result["results"]] == [2]

    @pytest.mark.asyncio
    async def test_advanced_search_categories_use_books(self, tools_dispatcher, fake_readwise):
        result = payload(await call(tools_dispatcher, "advanced_search", categories=["books"]))

        assert [h["id"] for h in result["results"]] == [3]
        assert any(request.url.path == "/api/v2/books/" for request in fake_readwise.requests)

    @pytest.mark.asyncio
    async def test_advanced_search_date_only_end_covers_whole_day(self, tools_dispatcher):
        result = payload(
            await call(
                tools_dispatcher,
                "advanced_search",
                date_range={"start": "2024-02-01", "end": "2024-02-29"},
            )
        )

        assert [h["id"] for h in result["results"]] == [2, 3]

    @pytest.mark.asyncio
    async def test_advanced_search_notes_and_location_sort(self, tools_dispatcher):
        result = payload(
            await call(tools_dispatcher, "advanced_search", has_note=True, sort_by="location", sort_order="asc")
        )

        assert [h["id"] for h in result["results"]] == [3, 1]

    @pytest.mark.asyncio
    async def test_advanced_search_location_range(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "advanced_search", location_range={"start": 10, "end": 50}))

        assert [h["id"] for h in result["results"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_advanced_search_paginates_sorted_results(self, tools_dispatcher):
        result = payload(
            await call(tools_dispatcher, "advanced_search", sort_by="highlighted_at", page=2, page_size=1)
        )

        assert result["count"] == 3
        assert result["page"] == 2
        assert [h["id"] for h in result["results"]] == [2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "date_range",
        [{"start": "2024-03-01", "end": "2024-02-01"}, {"start": "yesterday"}],
    )
    async def test_advanced_search_rejects_bad_ranges(self, tools_dispatcher, date_range):
        response = await call(tools_dispatcher, "advanced_search", date_range=date_range)

        assert response["error"]["type"] == "execution"
        assert response["error"]["details"]["code"] == "invalid_parameters"

    @pytest.mark.asyncio
    async def test_search_by_tag_any(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "search_by_tag", tags=["Favorite"]))

        assert [h["id"] for h in result["results"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_search_by_tag_all(self, tools_dispatcher):
        result = payload(
            await call(tools_dispatcher, "search_by_tag", tags=["favorite", "performance"], match_all=True)
        )

        assert [h["id"] for h in result["results"]] == [2]

    @pytest.mark.asyncio
    async def test_search_by_tag_requires_a_tag(self, tools_dispatcher):
        response = await call(tools_dispatcher, "search_by_tag", tags=[])

        assert response["error"]["type"] == "validation"

    @pytest.mark.asyncio
    async def test_search_by_date_newest_first(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "search_by_date", start_date="2024-02-01"))

        assert [h["id"] for h in result["results"]] == [3, 2]

    @pytest.mark.asyncio
    async def test_search_by_date_on_updated_field(self, tools_dispatcher):
        result = payload(
            await call(tools_dispatcher, "search_by_date", end_date="2024-03-01", date_field="updated_at")
        )

        assert [h["id"] for h in result["results"]] == [1]


class TestVideoTools:
    @pytest.mark.asyncio
    async def test_create_video_highlight(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(
                tools_dispatcher,
                "create_video_highlight",
                document_id="doc-2",
                text="Key point",
                timestamp="1:02:03",
                note="rewatch",
            )
        )

        assert result["seconds"] == 3723
        assert result["timestamp"] == "1:02:03"
        [highlight] = json.loads(fake_readwise.requests[-1].content)["highlights"]
        assert highlight["location"] == 3723
        assert highlight["location_type"] == "time_offset"
        assert highlight["title"] == "A talk"
        assert highlight["source_url"] == "https://youtube.com/watch?v=x"
        assert highlight["note"] == "rewatch"

    @pytest.mark.asyncio
    async def test_create_video_highlight_rejects_bad_timestamp(self, tools_dispatcher, fake_readwise):
        response = await call(
            tools_dispatcher, "create_video_highlight", document_id="doc-2", text="x", timestamp="14:75"
        )

        assert response["error"]["details"]["code"] == "invalid_parameters"
        assert not any(request.method == "POST" for request in fake_readwise.requests)

    @pytest.mark.asyncio
    async def test_create_video_highlight_on_article(self, tools_dispatcher):
        response = await call(
            tools_dispatcher, "create_video_highlight", document_id="doc-1", text="x", timestamp="14:35"
        )

        assert response["error"]["details"]["code"] == "not_a_video"

    @pytest.mark.asyncio
    async def test_get_video_highlights(self, tools_dispatcher, fake_readwise):
        fake_readwise.documents.extend(
            [
                {"id": "hl-1", "category": "highlight", "parent_id": "doc-2", "content": "Key point", "tags": {}},
                {"id": "hl-2", "category": "highlight", "parent_id": "doc-1", "content": "Other", "tags": {}},
            ]
        )

        result = payload(await call(tools_dispatcher, "get_video_highlights", document_id="doc-2"))

        assert result["count"] == 1
        assert result["highlights"][0]["id"] == "hl-1"

    @pytest.mark.asyncio
    async def test_update_video_position(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(tools_dispatcher, "update_video_position", document_id="doc-2", position=90, duration=360)
        )

        assert result["percentage"] == 25.0
        assert result["timestamp"] == "1:30"
        request = fake_readwise.requests[-1]
        assert request.url.path == "/api/v3/update/doc-2/"
        assert json.loads(request.content) == {"reading_progress": 0.25}

    @pytest.mark.asyncio
    async def test_update_video_position_past_the_end(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(tools_dispatcher, "update_video_position", document_id="doc-2", position=500, duration=360)
        )

        assert result["percentage"] == 100.0
        assert json.loads(fake_readwise.requests[-1].content) == {"reading_progress": 1.0}

    @pytest.mark.asyncio
    async def test_update_video_position_requires_duration(self, tools_dispatcher):
        response = await call(tools_dispatcher, "update_video_position", document_id="doc-2", position=5, duration=0)

        assert response["error"]["type"] == "validation"

    @pytest.mark.asyncio
    async def test_get_video_position(self, tools_dispatcher):
        result = payload(await call(tools_dispatcher, "get_video_position", document_id="doc-2"))

        assert result["document_id"] == "doc-2"
        assert result["status"] == "not_started"
        assert result["percentage"] == 0.0


class TestBulkTools:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,parameters",
        [
            ("bulk_tags", {"document_ids": ["doc-1"], "tags": ["x"]}),
            ("bulk_save_documents", {"items": [{"url": "https://example.com"}]}),
            ("bulk_update_documents", {"updates": [{"document_id": "doc-1", "title": "t"}]}),
            ("bulk_delete_documents", {"document_ids": ["doc-1"]}),
        ],
    )
    async def test_confirmation_required(self, tools_dispatcher, fake_readwise, name, parameters):
        response = await call(tools_dispatcher, name, confirmation="yes", **parameters)

        assert response["error"]["details"]["code"] == "confirmation_required"
        assert all(request.method == "GET" for request in fake_readwise.requests)

    @pytest.mark.asyncio
    async def test_bulk_tags_appends(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(
                tools_dispatcher,
                "bulk_tags",
                document_ids=["doc-1", "doc-3"],
                tags=["ml", "ai"],
                confirmation="I confirm these tag changes",
            )
        )

        assert result["succeeded"] == 2
        assert [item["result"]["tags"] for item in result["results"]] == [["ai", "ml"], ["ml", "ai"]]
        patches = [json.loads(r.content) for r in fake_readwise.requests if r.method == "PATCH"]
        assert patches == [{"tags": ["ai", "ml"]}, {"tags": ["ml", "ai"]}]

    @pytest.mark.asyncio
    async def test_bulk_tags_replace_skips_lookup(self, tools_dispatcher, fake_readwise):
        payload(
            await call(
                tools_dispatcher,
                "bulk_tags",
                document_ids=["doc-1"],
                tags=["x"],
                replace_existing=True,
                confirmation="I confirm these tag changes",
            )
        )

        assert [request.method for request in fake_readwise.requests] == ["PATCH"]
        assert json.loads(fake_readwise.requests[0].content) == {"tags": ["x"]}

    @pytest.mark.asyncio
    async def test_bulk_tags_records_missing_documents(self, tools_dispatcher):
        result = payload(
            await call(
                tools_dispatcher,
                "bulk_tags",
                document_ids=["doc-404", "doc-1"],
                tags=["x"],
                confirmation="I confirm these tag changes",
            )
        )

        assert (result["total"], result["succeeded"], result["failed"]) == (2, 1, 1)
        failure = result["results"][0]
        assert failure["id"] == "doc-404"
        assert failure["success"] is False
        assert failure["error"]["details"]["code"] == "not_found"
        assert result["results"][1]["success"] is True

    @pytest.mark.asyncio
    async def test_bulk_save_documents(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(
                tools_dispatcher,
                "bulk_save_documents",
                items=[{"url": "https://a.test", "tags": ["x"]}, {"url": "https://b.test", "location": "later"}],
                confirmation="I confirm saving these items",
            )
        )

        assert [item["id"] for item in result["results"]] == ["https://a.test", "https://b.test"]
        assert result["results"][0]["result"]["id"] == "doc-new"
        bodies = [json.loads(r.content) for r in fake_readwise.requests]
        assert bodies == [{"url": "https://a.test", "tags": ["x"]}, {"url": "https://b.test", "location": "later"}]

    @pytest.mark.asyncio
    async def test_bulk_update_documents_reports_empty_updates(self, tools_dispatcher, fake_readwise):
        result = payload(
            await call(
                tools_dispatcher,
                "bulk_update_documents",
                updates=[{"document_id": "doc-1"}, {"document_id": "doc-3", "location": "archive"}],
                confirmation="I confirm these updates",
            )
        )

        assert result["failed"] == 1
        assert result["results"][0]["error"]["details"]["code"] == "invalid_parameters"
        assert [r.url.path for r in fake_readwise.requests] == ["/api/v3/update/doc-3/"]

    @pytest.mark.asyncio
    async def test_bulk_delete_continues_after_failure(self, tools_dispatcher, fake_readwise):
        fake_readwise.overrides["/api/v3/delete/doc-1/"] = lambda request: httpx.Response(500, json={})

        result = payload(
            await call(
                tools_dispatcher,
                "bulk_delete_documents",
                document_ids=["doc-1", "doc-3"],
                confirmation="I confirm deletion of these documents",
            )
        )

        assert [item["success"] for item in result["results"]] == [False, True]
        assert result["results"][0]["error"]["details"]["code"] == "api_error"
        assert [r.url.path for r in fake_readwise.requests] == ["/api/v3/delete/doc-1/", "/api/v3/delete/doc-3/"]


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_api_key_is_validation_error(self):
        from readwise_mcp.api import ReadwiseAPI, ReadwiseClient

        registry = ToolRegistry()
        for tool in build_tools(ReadwiseAPI(ReadwiseClient(""))):
            registry.register(tool)
        dispatcher = Dispatcher(registry, PromptRegistry())

        response = await call(dispatcher, "get_books")

        assert response["error"]["type"] == "validation"
        assert response["error"]["details"]["code"] == "missing_api_key"
