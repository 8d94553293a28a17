"""
Session-correlated HTTP adapter (``ALL /mcp``).

The ``mcp-session-id`` request header selects a stored session. Requests
without a known session get a fresh transport whose id is returned in the
``mcp-session-id`` response header. Responses are plain JSON.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, Response
from mcp import types

from ..dispatcher import Dispatcher
from ..exceptions import MCPHTTPError, error_json
from ..jsonrpc import ProtocolSession, error_message
from ..protocol import ErrorType
from ..sessions import SessionStore

logger = structlog.get_logger(__name__)

SESSION_HEADER = "mcp-session-id"


class StreamableHttpTransport:
    """Bound transport for one logical HTTP session."""

    def __init__(self, session_id: str, protocol: ProtocolSession) -> None:
        self.session_id = session_id
        self.protocol = protocol
        self.closed = False

    async def handle_request(self, payload: Any) -> Any:
        if self.closed:
            raise RuntimeError(f"Session {self.session_id} is closed")
        return await self.protocol.handle_payload(payload)

    async def close(self) -> None:
        self.closed = True


class StreamableHttpAdapter:
    """Owns the HTTP session store and the ``/mcp`` route."""

    def __init__(self, dispatcher: Dispatcher, server_name: str, server_version: str) -> None:
        self.dispatcher = dispatcher
        self.server_name = server_name
        self.server_version = server_version
        self.sessions: SessionStore[StreamableHttpTransport] = SessionStore("streamable-http")

    def resolve(self, session_id: Optional[str]) -> tuple[StreamableHttpTransport, bool]:
        """Return (transport, created) for the given session header value."""
        if session_id:
            existing = self.sessions.get(session_id)
            if existing is not None:
                logger.debug("Reusing transport for session", session_id=session_id)
                return existing, False

        new_id = uuid.uuid4().hex
        protocol = ProtocolSession(self.dispatcher, new_id, self.server_name, self.server_version)
        transport = StreamableHttpTransport(new_id, protocol)
        self.sessions.add(new_id, transport)
        logger.info("Created new Streamable HTTP transport", session_id=new_id, active=len(self.sessions))
        return transport, True

    async def terminate(self, session_id: Optional[str]) -> bool:
        transport = self.sessions.remove(session_id) if session_id else None
        if transport is None:
            return False
        await transport.close()
        logger.info("Streamable HTTP session terminated", session_id=session_id)
        return True

    async def close(self) -> None:
        closed = await self.sessions.close_all()
        if closed:
            logger.info("Closed Streamable HTTP sessions", count=closed)

    async def _handle_post(self, request: Request) -> Response:
        # Parse before resolving so undecodable bodies never allocate a session.
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Invalid JSON on /mcp", error=str(exc))
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=error_message(None, types.PARSE_ERROR, f"Parse error: {exc}"),
            )

        transport, _ = self.resolve(request.headers.get(SESSION_HEADER))
        headers = {SESSION_HEADER: transport.session_id}
        result = await transport.handle_request(payload)
        if result is None:
            return Response(status_code=status.HTTP_202_ACCEPTED, headers=headers)
        return JSONResponse(content=result, headers=headers)

    def create_router(self, dependencies: Optional[list] = None) -> APIRouter:
        router = APIRouter(tags=["mcp-http"], dependencies=dependencies or [])

        @router.api_route("/mcp", methods=["GET", "POST", "DELETE"])
        async def mcp_endpoint(request: Request) -> Response:
            logger.debug("MCP Streamable HTTP request received", method=request.method)
            if request.method == "POST":
                try:
                    return await self._handle_post(request)
                except Exception as exc:
                    logger.error("Error handling MCP Streamable HTTP request", error=str(exc), exc_info=True)
                    return error_json(
                        status.HTTP_500_INTERNAL_SERVER_ERROR,
                        ErrorType.TRANSPORT,
                        "server_error",
                        str(exc) or "Unknown error",
                    )

            if request.method == "DELETE":
                session_id = request.headers.get(SESSION_HEADER)
                if not await self.terminate(session_id):
                    raise MCPHTTPError(
                        status.HTTP_404_NOT_FOUND,
                        ErrorType.TRANSPORT,
                        "session_not_found",
                        f"Session not found: {session_id}",
                    )
                return Response(status_code=status.HTTP_200_OK)

            # Server-initiated streams are not offered on this binding.
            return Response(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, headers={"Allow": "POST, DELETE"})

        @router.options("/mcp", include_in_schema=False)
        async def mcp_preflight() -> Response:
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        return router
