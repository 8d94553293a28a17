"""
Persistent event-stream (SSE) adapter.

``GET /sse`` opens a stream and allocates a session; the first event tells
the client where to post: ``/messages?sessionId=<id>``. Each posted message
is processed by the session's protocol binding and the response is pushed
back on the stream as a ``message`` event.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Set

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import Response
from sse_starlette.sse import EventSourceResponse

from ..dispatcher import Dispatcher
from ..exceptions import MCPHTTPError, error_json
from ..jsonrpc import ProtocolSession
from ..protocol import ErrorType
from ..sessions import SessionStore

logger = structlog.get_logger(__name__)

MESSAGE_ENDPOINT = "/messages"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSED = object()


def new_session_id() -> str:
    return f"sse-{uuid.uuid4().hex}"


class SseTransport:
    """
    Bound transport for one SSE connection.

    Outbound messages are queued until the event generator picks them up.
    Once closed, late results from in-flight work are dropped.
    """

    def __init__(self, session_id: str, protocol: ProtocolSession, endpoint: str = MESSAGE_ENDPOINT) -> None:
        self.session_id = session_id
        self.protocol = protocol
        self.endpoint = endpoint
        self.closed = False
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._close_callbacks: List[Callable[[], None]] = []

    @property
    def endpoint_url(self) -> str:
        return f"{self.endpoint}?sessionId={self.session_id}"

    def on_close(self, callback: Callable[[], None]) -> None:
        self._close_callbacks.append(callback)

    def handle_post_message(self, payload: Any) -> asyncio.Task:
        """Schedule processing of a client message; the response goes to the stream."""
        if self.closed:
            raise RuntimeError(f"Transport for session {self.session_id} is closed")
        task = asyncio.create_task(self._process(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process(self, payload: Any) -> None:
        try:
            response = await self.protocol.handle_payload(payload)
        except Exception as exc:
            logger.error("SSE message processing failed", session_id=self.session_id, error=str(exc), exc_info=True)
            return
        if response is not None:
            await self.send(response)

    async def send(self, message: Any) -> None:
        if self.closed:
            logger.debug("Dropping message for closed SSE session", session_id=self.session_id)
            return
        await self._outbox.put(message)

    async def next_message(self) -> Optional[Any]:
        """Wait for the next outbound message; None once the transport closes."""
        message = await self._outbox.get()
        if message is _CLOSED:
            return None
        return message

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._outbox.put_nowait(_CLOSED)
        for callback in self._close_callbacks:
            try:
                callback()
            except Exception as exc:
                logger.warning("SSE close callback failed", session_id=self.session_id, error=str(exc))
        logger.debug("SSE transport closed", session_id=self.session_id)


class SseAdapter:
    """Owns the SSE session store and the ``/sse`` + ``/messages`` routes."""

    def __init__(self, dispatcher: Dispatcher, server_name: str, server_version: str) -> None:
        self.dispatcher = dispatcher
        self.server_name = server_name
        self.server_version = server_version
        self.sessions: SessionStore[SseTransport] = SessionStore("sse")

    def open_session(self) -> SseTransport:
        """Allocate a session id and bind a protocol session. Stored once its stream starts."""
        session_id = new_session_id()
        protocol = ProtocolSession(self.dispatcher, session_id, self.server_name, self.server_version)
        return SseTransport(session_id, protocol)

    def attach(self, transport: SseTransport) -> None:
        session_id = transport.session_id
        self.sessions.add(session_id, transport)
        transport.on_close(lambda: self.sessions.remove(session_id))
        logger.info("SSE transport connected", session_id=session_id, active=len(self.sessions))

    async def event_stream(self, transport: SseTransport) -> AsyncGenerator[Dict[str, str], None]:
        """Yield the endpoint event, then every outbound message until close."""
        # Registered here so a client that disconnects before streaming leaves nothing behind.
        self.attach(transport)
        try:
            yield {"event": "endpoint", "data": transport.endpoint_url}
            while True:
                message = await transport.next_message()
                if message is None:
                    break
                try:
                    data = json.dumps(message)
                except (TypeError, ValueError) as exc:
                    logger.error("Could not serialize SSE message", session_id=transport.session_id, error=str(exc))
                    continue
                yield {"event": "message", "data": data}
        finally:
            logger.debug("Client disconnected", session_id=transport.session_id)
            await transport.close()

    async def close(self) -> None:
        closed = await self.sessions.close_all()
        if closed:
            logger.info("Closed SSE sessions", count=closed)

    def create_router(self, dependencies: Optional[list] = None) -> APIRouter:
        router = APIRouter(tags=["mcp-sse"], dependencies=dependencies or [])

        @router.get("/sse")
        async def open_stream(request: Request) -> Response:
            logger.debug("New SSE connection request", client=request.client.host if request.client else None)
            try:
                transport = self.open_session()
            except Exception as exc:
                logger.error("Error in SSE endpoint", error=str(exc), exc_info=True)
                return error_json(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    ErrorType.TRANSPORT,
                    "server_error",
                    str(exc) or "Unknown error",
                )
            return EventSourceResponse(self.event_stream(transport), headers=SSE_HEADERS)

        @router.post(MESSAGE_ENDPOINT)
        async def post_message(request: Request) -> Response:
            session_id = request.query_params.get("sessionId")
            if not session_id:
                logger.warning("POST /messages request missing sessionId")
                raise MCPHTTPError(
                    status.HTTP_400_BAD_REQUEST,
                    ErrorType.VALIDATION,
                    "missing_session_id",
                    "Missing required query parameter: sessionId",
                )

            transport = self.sessions.get(session_id)
            if transport is None:
                logger.warning("No transport found for sessionId", session_id=session_id)
                raise MCPHTTPError(
                    status.HTTP_404_NOT_FOUND,
                    ErrorType.TRANSPORT,
                    "session_not_found",
                    f"No active SSE connection found for sessionId: {session_id}",
                )

            try:
                payload = json.loads(await request.body())
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise MCPHTTPError(
                    status.HTTP_400_BAD_REQUEST,
                    ErrorType.TRANSPORT,
                    "invalid_request",
                    f"Invalid JSON body: {exc}",
                ) from exc

            try:
                transport.handle_post_message(payload)
            except Exception as exc:
                logger.error("Error handling POST /messages", session_id=session_id, error=str(exc))
                return error_json(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    ErrorType.TRANSPORT,
                    "server_error",
                    str(exc) or "Unknown error",
                )
            return Response(content="Accepted", status_code=status.HTTP_202_ACCEPTED, media_type="text/plain")

        return router
