"""
Process composition: registries, dispatcher, transport adapters and the
FastAPI application, plus the serve/stop lifecycle.
"""

from __future__ import annotations

import asyncio
import signal
import socket
import time
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import ReadwiseAPI, ReadwiseClient
from .core.config import Settings
from .mcp.dispatcher import Dispatcher
from .mcp.exceptions import MCPHTTPError, general_exception_handler, mcp_http_error_handler
from .mcp.registry import PromptRegistry, ToolRegistry
from .mcp.routes import create_aux_router
from .mcp.security import create_token_gate
from .mcp.transports import SseAdapter, StdioAdapter, StreamableHttpAdapter
from .mcp.transports.stdio import open_stdin_reader
from .mcp.transports.streamable_http import SESSION_HEADER
from .prompts import build_prompts
from .tools import build_tools

logger = structlog.get_logger(__name__)

PROTOCOL_VERSION_HEADER = "mcp-protocol-version"
STARTUP_POLL_INTERVAL = 0.05


class StartupError(RuntimeError):
    """The HTTP listener could not be started."""


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind the listening socket up front so bind failures surface as StartupError."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise StartupError(f"Could not bind {host}:{port}: {exc.strerror or exc}") from exc
    sock.set_inheritable(True)
    return sock


class ReadwiseMCPServer:
    """
    Owns the shared registries and dispatcher and every transport adapter.

    The registries are filled once here, before any adapter accepts
    traffic, and are read-only afterwards.
    """

    def __init__(self, settings: Settings, api: Optional[ReadwiseAPI] = None) -> None:
        self.settings = settings
        self.api = api or ReadwiseAPI(
            ReadwiseClient(
                settings.readwise_api_key,
                base_url=settings.readwise_base_url,
                reader_base_url=settings.reader_base_url,
                timeout=settings.request_timeout,
                max_retries=settings.max_retries,
            )
        )
        self.tools = ToolRegistry()
        self.prompts = PromptRegistry()
        for tool in build_tools(self.api):
            self.tools.register(tool)
        for prompt in build_prompts(self.api):
            self.prompts.register(prompt)

        self.dispatcher = Dispatcher(self.tools, self.prompts)
        self.sse = SseAdapter(self.dispatcher, settings.app_name, settings.app_version)
        self.http = StreamableHttpAdapter(self.dispatcher, settings.app_name, settings.app_version)
        self.started_at = time.monotonic()
        self._ready = False
        self._uvicorn: Optional[uvicorn.Server] = None
        self._shutdown: Optional[asyncio.Event] = None

        logger.info(
            "MCP server initialized",
            tools=self.tools.get_names(),
            prompts=self.prompts.get_names(),
            transport=settings.transport,
        )

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        if not self._ready:
            self._ready = True
            logger.info("Server is ready")

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application for the HTTP transports."""
        settings = self.settings

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            logger.info("Starting Readwise MCP HTTP app", version=settings.app_version)
            yield
            await self.stop()

        app = FastAPI(
            title="Readwise MCP Server",
            description="Model Context Protocol server for Readwise highlights and Reader documents",
            version=settings.app_version,
            docs_url="/docs" if settings.debug else None,
            redoc_url=None,
            lifespan=lifespan,
        )

        if settings.cors_enabled:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=settings.parsed_cors_origins,
                allow_credentials="*" not in settings.parsed_cors_origins,
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["*"],
                expose_headers=[SESSION_HEADER, PROTOCOL_VERSION_HEADER],
            )

        app.add_exception_handler(MCPHTTPError, mcp_http_error_handler)
        app.add_exception_handler(Exception, general_exception_handler)

        gate = [Depends(create_token_gate(settings.server_auth_token))]
        if settings.server_auth_token:
            logger.info("Token authentication enabled for MCP endpoints")

        app.include_router(create_aux_router(self))
        app.include_router(self.sse.create_router(dependencies=gate))
        app.include_router(self.http.create_router(dependencies=gate))
        app.state.mcp_server = self
        return app

    async def serve_http(self) -> None:
        """Run the HTTP listener until it exits; readiness flips once it is bound."""
        host, port = self.settings.host, self.settings.port
        sock = bind_listener(host, port)
        config = uvicorn.Config(
            self.create_app(),
            host=host,
            port=port,
            log_config=None,
            log_level=self.settings.effective_log_level.lower(),
            access_log=self.settings.debug,
        )
        server = uvicorn.Server(config)
        self._uvicorn = server

        serve_task = asyncio.create_task(server.serve(sockets=[sock]))
        try:
            while not server.started:
                if serve_task.done():
                    break
                await asyncio.sleep(STARTUP_POLL_INTERVAL)

            if not server.started:
                try:
                    await serve_task
                except OSError as exc:
                    raise StartupError(f"Could not listen on {host}:{port}: {exc}") from exc
                raise StartupError(f"HTTP server on {host}:{port} exited during startup")

            logger.info(
                "Listening for MCP connections",
                host=host,
                port=port,
                sse="/sse",
                streamable_http="/mcp",
            )
            self.mark_ready()
            await serve_task
        finally:
            sock.close()

    def request_shutdown(self) -> None:
        """Ask a running stdio loop to stop; safe to call from a signal handler."""
        if self._shutdown is not None and not self._shutdown.is_set():
            logger.info("Shutdown requested")
            self._shutdown.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows event loops.
            with suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_shutdown)
                installed.append(sig)
        return installed

    async def serve_stdio(self, reader: Optional[asyncio.StreamReader] = None) -> None:
        """Serve line-delimited envelopes on stdin/stdout until stdin closes or a stop signal arrives."""
        if reader is None:
            reader = await open_stdin_reader()
        adapter = StdioAdapter(self.dispatcher, reader)
        loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        installed = self._install_signal_handlers(loop)

        serving = asyncio.create_task(adapter.serve())
        stopping = asyncio.create_task(self._shutdown.wait())
        self.mark_ready()
        logger.info("Stdio transport ready")
        try:
            done, _ = await asyncio.wait({serving, stopping}, return_when=asyncio.FIRST_COMPLETED)
            if serving in done:
                serving.result()
            else:
                serving.cancel()
                with suppress(asyncio.CancelledError):
                    await serving
        finally:
            stopping.cancel()
            serving.cancel()
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.stop()

    async def serve(self) -> None:
        if self.settings.transport == "sse":
            await self.serve_http()
        else:
            await self.serve_stdio()

    async def stop(self) -> None:
        """Close every stored session and the upstream client."""
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
        await self.sse.close()
        await self.http.close()
        await self.api.close()
        logger.info("MCP server stopped")
