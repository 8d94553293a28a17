"""
Line-delimited stdio adapter.

One JSON request envelope per input line, one JSON response envelope per
output line. Lines are handed to the dispatcher in arrival order; responses
are written as they complete and may therefore come out of order.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Dict, Optional, Set, TextIO

import structlog

from ..dispatcher import Dispatcher, best_known_request_id
from ..protocol import ErrorResponse, ErrorType

logger = structlog.get_logger(__name__)

STREAM_LIMIT = 4 * 1024 * 1024


async def open_stdin_reader(limit: int = STREAM_LIMIT) -> asyncio.StreamReader:
    """Wrap the process's stdin in an asyncio StreamReader."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


class StdioAdapter:
    """Reads envelopes from a stream reader and writes responses to a text stream."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        reader: asyncio.StreamReader,
        output: Optional[TextIO] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.reader = reader
        self.output = output or sys.stdout
        self._pending: Set[asyncio.Task] = set()
        self._closed = False

    async def serve(self) -> None:
        """Process lines until EOF, then wait for in-flight requests."""
        logger.info("Listening for requests on stdin")
        try:
            while True:
                try:
                    line = await self.reader.readuntil(b"\n")
                except asyncio.IncompleteReadError as exc:
                    # EOF; a final unterminated line is still a request.
                    if exc.partial:
                        self.feed_line(exc.partial.decode("utf-8", errors="replace"))
                    break
                except asyncio.LimitOverrunError:
                    more = await self._discard_line()
                    logger.error("Stdin line exceeds the read limit, discarded")
                    self._emit_parse_error("Request line too long")
                    if not more:
                        break
                    continue
                self.feed_line(line.decode("utf-8", errors="replace"))
        finally:
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
            self._closed = True
            logger.info("Stdin closed, stdio transport stopped")

    async def _discard_line(self) -> bool:
        """Drop input through the next newline. Returns False if EOF came first."""
        while True:
            try:
                await self.reader.readuntil(b"\n")
                return True
            except asyncio.IncompleteReadError:
                return False
            except asyncio.LimitOverrunError as exc:
                await self.reader.readexactly(exc.consumed)

    def feed_line(self, line: str) -> Optional[asyncio.Task]:
        """Parse one line and schedule its dispatch."""
        text = line.strip()
        if not text:
            return None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Error parsing stdin line", error=str(exc))
            self._emit_parse_error(f"Invalid JSON: {exc.msg}")
            return None
        task = asyncio.create_task(self._handle(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _handle(self, payload: Any) -> None:
        try:
            response = await self.dispatcher.dispatch(payload)
        except Exception as exc:
            logger.error("Dispatcher failed on stdin request", error=str(exc), exc_info=True)
            response = ErrorResponse.build(
                ErrorType.TRANSPORT,
                "server_error",
                str(exc) or "Internal error",
                best_known_request_id(payload),
            ).to_wire()
        self._write(response)

    def _emit_parse_error(self, message: str) -> None:
        response = ErrorResponse.build(ErrorType.TRANSPORT, "invalid_request", message)
        self._write(response.to_wire())

    def _write(self, response: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug("Dropping response, stdout closed", request_id=response.get("request_id"))
            return
        try:
            line = json.dumps(response, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialize response", error=str(exc), request_id=response.get("request_id"))
            line = json.dumps(
                ErrorResponse.build(
                    ErrorType.TRANSPORT,
                    "serialization_error",
                    str(exc),
                    response.get("request_id") if isinstance(response.get("request_id"), str) else None,
                ).to_wire()
            )
        try:
            self.output.write(line + "\n")
            self.output.flush()
        except (OSError, ValueError) as exc:
            self._closed = True
            logger.error("Stdout write failed, dropping further responses", error=str(exc))
