"""
MCP JSON-RPC binding for the streaming transports.

A :class:`ProtocolSession` is the protocol-layer object bound to one
streaming connection. It decodes JSON-RPC messages (types from the
``mcp`` package), turns ``tools/call`` and ``prompts/get`` into dispatcher
envelopes, and encodes the dispatcher's response back into JSON-RPC.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import structlog
from mcp import types
from pydantic import ValidationError

from .dispatcher import Dispatcher
from .protocol import ImageContent, OperationSpec, RequestType

logger = structlog.get_logger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

JSONDict = Dict[str, Any]


def _dump(model: Any) -> JSONDict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def error_message(request_id: Any, code: int, message: str, data: Any = None) -> JSONDict:
    """Build a JSON-RPC error object; ``request_id`` may be None for undecodable input."""
    error = _dump(types.ErrorData(code=code, message=message, data=data))
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def result_message(request_id: Any, result: Any) -> JSONDict:
    payload = result if isinstance(result, dict) else _dump(result)
    return _dump(types.JSONRPCResponse(jsonrpc="2.0", id=request_id, result=payload))


def to_mcp_content(item: Dict[str, Any]) -> Union[types.TextContent, types.ImageContent]:
    if item.get("type") == "image":
        image = ImageContent.model_validate(item)
        return types.ImageContent(type="image", data=image.data, mimeType=image.mime_type)
    return types.TextContent(type="text", text=str(item.get("text", "")))


def prompt_arguments(spec: OperationSpec) -> List[types.PromptArgument]:
    """Derive prompt arguments from a prompt's JSON schema."""
    properties = spec.parameters.get("properties", {})
    required = set(spec.parameters.get("required", []))
    return [
        types.PromptArgument(
            name=name,
            description=schema.get("description"),
            required=name in required,
        )
        for name, schema in properties.items()
    ]


def _error_text(details: JSONDict) -> str:
    lines = [details.get("message", "Unknown error")]
    lines.extend(details.get("errors") or [])
    return "\n".join(lines)


class ProtocolSession:
    """One MCP conversation bound to the shared dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        session_id: str,
        server_name: str,
        server_version: str,
    ) -> None:
        self.dispatcher = dispatcher
        self.session_id = session_id
        self.server_name = server_name
        self.server_version = server_version
        self.initialized = False
        self.client_info: Optional[JSONDict] = None

    async def handle_payload(self, payload: Any) -> Union[JSONDict, List[JSONDict], None]:
        """
        Process a decoded JSON body (single message or batch).

        Returns the response(s) to send back, or None when nothing is owed
        (notifications and client responses).
        """
        if isinstance(payload, list):
            if not payload:
                return error_message(None, types.INVALID_REQUEST, "Empty batch")
            responses = []
            for item in payload:
                response = await self.handle_message(item)
                if response is not None:
                    responses.append(response)
            return responses or None
        return await self.handle_message(payload)

    async def handle_message(self, raw: Any) -> Optional[JSONDict]:
        try:
            message = types.JSONRPCMessage.model_validate(raw).root
        except ValidationError as exc:
            request_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning("Invalid JSON-RPC message", session_id=self.session_id, error=str(exc))
            return error_message(request_id, types.INVALID_REQUEST, "Invalid JSON-RPC message")

        if isinstance(message, types.JSONRPCNotification):
            self._on_notification(message)
            return None
        if not isinstance(message, types.JSONRPCRequest):
            # Client responses to server requests; the server never sends any.
            logger.debug("Ignoring client response", session_id=self.session_id)
            return None

        try:
            return await self._on_request(message)
        except Exception as exc:
            logger.error(
                "Unhandled error processing JSON-RPC request",
                session_id=self.session_id,
                method=message.method,
                error=str(exc),
                exc_info=True,
            )
            return error_message(message.id, types.INTERNAL_ERROR, str(exc) or "Internal error")

    def _on_notification(self, notification: types.JSONRPCNotification) -> None:
        if notification.method == "notifications/initialized":
            self.initialized = True
        logger.debug("Notification received", session_id=self.session_id, method=notification.method)

    async def _on_request(self, request: types.JSONRPCRequest) -> JSONDict:
        params = request.params or {}
        method = request.method
        logger.debug("JSON-RPC request", session_id=self.session_id, method=method, id=request.id)

        if method == "initialize":
            return result_message(request.id, self._initialize(params))
        if method == "ping":
            return result_message(request.id, {})
        if method == "tools/list":
            return result_message(request.id, self._list_tools())
        if method == "prompts/list":
            return result_message(request.id, self._list_prompts())
        if method == "tools/call":
            return await self._call_tool(request.id, params)
        if method == "prompts/get":
            return await self._get_prompt(request.id, params)
        return error_message(request.id, types.METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: JSONDict) -> types.InitializeResult:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION
        self.client_info = params.get("clientInfo")
        logger.info(
            "MCP session initialized",
            session_id=self.session_id,
            protocol_version=version,
            client=(self.client_info or {}).get("name"),
        )
        return types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                prompts=types.PromptsCapability(listChanged=False),
            ),
            serverInfo=types.Implementation(name=self.server_name, version=self.server_version),
        )

    def _list_tools(self) -> types.ListToolsResult:
        tools = []
        for spec in self.dispatcher.tools.list_specs():
            tools.append(
                types.Tool(
                    name=spec.name,
                    description=spec.description,
                    inputSchema=spec.parameters,
                    annotations=types.ToolAnnotations(**spec.annotations) if spec.annotations else None,
                )
            )
        return types.ListToolsResult(tools=tools)

    def _list_prompts(self) -> types.ListPromptsResult:
        prompts = [
            types.Prompt(name=spec.name, description=spec.description, arguments=prompt_arguments(spec))
            for spec in self.dispatcher.prompts.list_specs()
        ]
        return types.ListPromptsResult(prompts=prompts)

    def _envelope(self, request_type: RequestType, request_id: Any, params: JSONDict) -> JSONDict:
        return {
            "type": request_type.value,
            "name": params.get("name"),
            "parameters": params.get("arguments") or {},
            "request_id": str(request_id),
        }

    async def _call_tool(self, request_id: Any, params: JSONDict) -> JSONDict:
        response = await self.dispatcher.dispatch(self._envelope(RequestType.TOOL_CALL, request_id, params))
        if "error" not in response:
            content = [to_mcp_content(item) for item in response["content"]]
            return result_message(request_id, types.CallToolResult(content=content, isError=False))

        details = response["error"]["details"]
        if details["code"] in ("tool_not_found", "invalid_request"):
            return error_message(request_id, types.INVALID_PARAMS, details["message"])
        result = types.CallToolResult(
            content=[types.TextContent(type="text", text=_error_text(details))],
            isError=True,
        )
        return result_message(request_id, result)

    async def _get_prompt(self, request_id: Any, params: JSONDict) -> JSONDict:
        response = await self.dispatcher.dispatch(self._envelope(RequestType.PROMPT_CALL, request_id, params))
        if "error" in response:
            details = response["error"]["details"]
            code = types.INTERNAL_ERROR
            if details["code"] in ("prompt_not_found", "invalid_request", "invalid_parameters"):
                code = types.INVALID_PARAMS
            return error_message(request_id, code, _error_text(details))

        texts = [item for item in response["content"] if item.get("type") == "text"]
        first = texts[0]["text"] if texts else ""
        result = types.GetPromptResult(
            messages=[
                types.PromptMessage(role="user", content=types.TextContent(type="text", text=first)),
            ],
        )
        return result_message(request_id, result)
