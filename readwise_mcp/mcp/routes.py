"""FastAPI router exposing identity, health and discovery endpoints."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

if TYPE_CHECKING:  # pragma: no cover
    from ..server import ReadwiseMCPServer

logger = structlog.get_logger(__name__)


def create_aux_router(server: "ReadwiseMCPServer") -> APIRouter:
    """Routes that never require the token gate."""

    router = APIRouter(tags=["meta"])
    settings = server.settings

    @router.get("/")
    async def identity() -> Dict[str, Any]:
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "transport": settings.transport,
            "endpoints": {
                "health": "/health",
                "capabilities": "/capabilities",
                "sse": "/sse",
                "mcp": "/mcp",
            },
        }

    @router.get("/health")
    async def health() -> JSONResponse:
        ready = server.ready
        body = {
            "status": "ok" if ready else "starting",
            "ready": ready,
            "uptime": round(time.monotonic() - server.started_at, 3),
            "transport": settings.transport,
            "tools": len(server.tools),
            "prompts": len(server.prompts),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "port": settings.port,
        }
        status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
        logger.debug("Health check requested", status_code=status_code, ready=ready)
        return JSONResponse(status_code=status_code, content=body)

    @router.get("/capabilities")
    async def capabilities() -> Dict[str, Any]:
        return {
            "version": settings.app_version,
            "transports": ["sse", "streamable-http"],
            "tools": [spec.model_dump(include={"name", "description", "parameters"}) for spec in server.tools.list_specs()],
            "prompts": [spec.model_dump(include={"name", "description", "parameters"}) for spec in server.prompts.list_specs()],
        }

    @router.get("/.well-known/oauth-authorization-server")
    async def oauth_metadata() -> JSONResponse:
        logger.debug("OAuth metadata requested - not supported")
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "oauth_not_supported",
                "message": "This server uses API key authentication, not OAuth",
            },
        )

    return router
