"""Request dispatcher: envelope validation, routing, execution and normalization."""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional, Tuple

import structlog
from pydantic_core import to_jsonable_python

from . import validation
from .base import BaseOperation
from .protocol import (
    ContentEnvelope,
    ErrorResponse,
    ErrorType,
    OperationResult,
    RawValue,
    RequestEnvelope,
    RequestType,
    Response,
    SuccessResponse,
    TextContent,
    UNKNOWN_REQUEST_ID,
)
from .registry import PromptRegistry, ToolRegistry

logger = structlog.get_logger(__name__)

_REQUIRED_FIELDS = ("type", "name", "request_id")


def best_known_request_id(payload: Any) -> str:
    """Return the payload's request_id when usable, else the sentinel."""
    if isinstance(payload, dict):
        request_id = payload.get("request_id")
        if isinstance(request_id, str) and request_id.strip():
            return request_id
    return UNKNOWN_REQUEST_ID


def check_envelope(payload: Any) -> Optional[str]:
    """Return a description of the first envelope problem, or None if well formed."""
    if not isinstance(payload, dict):
        return "Request must be a JSON object"
    for field in _REQUIRED_FIELDS:
        if field not in payload:
            return f"Missing required field: {field}"
    if payload["type"] not in (RequestType.TOOL_CALL.value, RequestType.PROMPT_CALL.value):
        return (
            f"Invalid request type: {payload['type']}. "
            "Must be 'tool_call' or 'prompt_call'"
        )
    name = payload["name"]
    if not isinstance(name, str) or not name.strip():
        return "Invalid request name: must be a non-empty string"
    request_id = payload["request_id"]
    if not isinstance(request_id, str) or not request_id.strip():
        return "Invalid request_id: must be a non-empty string"
    if not isinstance(payload.get("parameters"), dict):
        return "Missing or invalid parameters: must be an object"
    return None


def normalize_result(result: Any, request_id: str) -> SuccessResponse:
    """Wrap an operation result into a success envelope."""
    if isinstance(result, ContentEnvelope):
        return SuccessResponse(content=result.content, request_id=request_id)
    value = result.value if isinstance(result, RawValue) else result
    text = json.dumps(to_jsonable_python(value, fallback=str))
    return SuccessResponse(content=[TextContent(text=text)], request_id=request_id)


def map_execution_error(exc: BaseException, default_code: str) -> Tuple[ErrorType, str, str]:
    """
    Translate an execution failure into (error type, code, message).

    Authentication-flagged errors are reported as validation errors so that
    callers treat bad credentials like bad input. Structured ``details``
    carried by the exception win over its message text.
    """
    is_auth_error = getattr(exc, "type", None) == "authentication"
    error_type = ErrorType.VALIDATION if is_auth_error else ErrorType.EXECUTION

    details = getattr(exc, "details", None)
    code = default_code
    message = str(exc) or "Unknown error"
    if isinstance(details, dict):
        if details.get("code") is not None:
            code = str(details["code"])
        if details.get("message") is not None:
            message = str(details["message"])
    return error_type, code, message


class Dispatcher:
    """
    Routes request envelopes to registered tools and prompts.

    Every call to :meth:`dispatch` produces exactly one response envelope and
    never raises. The dispatcher keeps no per-request state: identical
    requests are executed independently each time.
    """

    def __init__(self, tools: ToolRegistry, prompts: PromptRegistry) -> None:
        self.tools = tools
        self.prompts = prompts

    async def dispatch(self, payload: Any) -> Dict[str, Any]:
        """Handle a decoded request payload and return the wire-shaped response."""
        response = await self.handle(payload)
        return response.to_wire()

    async def handle(self, payload: Any) -> Response:
        problem = check_envelope(payload)
        if problem is not None:
            request_id = best_known_request_id(payload)
            logger.warning("Invalid MCP request format", error=problem, request_id=request_id)
            return ErrorResponse.build(ErrorType.TRANSPORT, "invalid_request", problem, request_id)

        envelope = RequestEnvelope.model_validate(payload)
        logger.debug(
            "Handling MCP request",
            type=envelope.type.value,
            name=envelope.name,
            request_id=envelope.request_id,
        )
        if envelope.type is RequestType.TOOL_CALL:
            return await self._call(envelope, self.tools.get(envelope.name), "tool")
        return await self._call(envelope, self.prompts.get(envelope.name), "prompt")

    async def _call(
        self,
        envelope: RequestEnvelope,
        operation: Optional[BaseOperation],
        kind: str,
    ) -> Response:
        request_id = envelope.request_id
        if operation is None:
            logger.warning(f"{kind.capitalize()} not found", name=envelope.name, request_id=request_id)
            return ErrorResponse.build(
                ErrorType.TRANSPORT,
                f"{kind}_not_found",
                f"{kind.capitalize()} not found: {envelope.name}",
                request_id,
            )

        verdict = validation.validate(operation, envelope.parameters)
        if not verdict.valid:
            errors = [issue.format() for issue in verdict.errors]
            logger.warning(f"Invalid parameters for {kind}", name=envelope.name, errors=errors, request_id=request_id)
            return ErrorResponse.build(
                ErrorType.VALIDATION,
                "invalid_parameters",
                "Invalid parameters",
                request_id,
                errors=errors,
            )

        started = time.perf_counter()
        try:
            result: OperationResult = await operation.execute(envelope.parameters)
        except Exception as exc:
            error_type, code, message = map_execution_error(exc, f"{kind}_error")
            logger.error(
                f"{kind.capitalize()} execution error",
                name=envelope.name,
                request_id=request_id,
                error_type=error_type.value,
                code=code,
                error=message,
                latency_ms=int((time.perf_counter() - started) * 1000),
            )
            return ErrorResponse.build(error_type, code, message, request_id)

        try:
            response = normalize_result(result, request_id)
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialize operation result", name=envelope.name, request_id=request_id, error=str(exc))
            return ErrorResponse.build(ErrorType.EXECUTION, f"{kind}_error", f"Unserializable result: {exc}", request_id)

        logger.debug(
            f"{kind.capitalize()} execution successful",
            name=envelope.name,
            request_id=request_id,
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        return response
