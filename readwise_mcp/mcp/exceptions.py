"""
Exception handlers rendering HTTP-level failures as error envelopes.
"""

from typing import Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from .protocol import ErrorResponse, ErrorType

logger = structlog.get_logger(__name__)


class MCPHTTPError(Exception):
    """HTTP failure on an MCP endpoint, rendered as an error envelope."""

    def __init__(
        self,
        status_code: int,
        error_type: ErrorType,
        code: str,
        message: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.code = code
        self.message = message
        self.headers = headers

    def body(self) -> dict:
        envelope = ErrorResponse.build(self.error_type, self.code, self.message).to_wire()
        envelope.pop("request_id", None)
        return envelope


def error_json(status_code: int, error_type: ErrorType, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=MCPHTTPError(status_code, error_type, code, message).body(),
    )


async def mcp_http_error_handler(request: Request, exc: MCPHTTPError) -> JSONResponse:
    """Handle MCPHTTPError raised by routes and dependencies."""
    logger.warning(
        "MCP HTTP error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        code=exc.code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking them past the adapter."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return error_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorType.TRANSPORT,
        "server_error",
        str(exc) or "Unknown error",
    )
