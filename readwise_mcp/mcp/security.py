"""
Optional shared-token gate for the streaming endpoints.

Clients present the token as ``Authorization: Bearer <token>`` or as a
``?token=`` query parameter. Comparison is constant time.
"""

from __future__ import annotations

import secrets
from typing import Callable, Optional

import structlog
from fastapi import Request, status

from .exceptions import MCPHTTPError
from .protocol import ErrorType

logger = structlog.get_logger(__name__)


def extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    return request.query_params.get("token") or None


def tokens_match(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def create_token_gate(expected_token: Optional[str]) -> Callable[[Request], None]:
    """Build a FastAPI dependency enforcing ``expected_token``; no-op when unset."""

    async def token_gate(request: Request) -> None:
        if not expected_token or request.method == "OPTIONS":
            return
        token = extract_token(request)
        if token is None:
            raise MCPHTTPError(
                status.HTTP_401_UNAUTHORIZED,
                ErrorType.TRANSPORT,
                "authentication_required",
                "Authentication required. Provide token via Authorization: Bearer <token> "
                "header or ?token=<token> query parameter.",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not tokens_match(token, expected_token):
            logger.warning("Rejected MCP request with invalid token", path=request.url.path)
            raise MCPHTTPError(
                status.HTTP_403_FORBIDDEN,
                ErrorType.TRANSPORT,
                "invalid_token",
                "Invalid authentication token.",
            )

    return token_gate
