"""Model Context Protocol (MCP) dispatch layer for the Readwise server."""

from .base import BasePrompt, BaseTool, ToolExecutionError
from .dispatcher import Dispatcher
from .protocol import (
    ContentEnvelope,
    ErrorResponse,
    ErrorType,
    RawValue,
    RequestEnvelope,
    SuccessResponse,
    TextContent,
    ValidationResult,
)
from .registry import PromptRegistry, ToolRegistry
from .sessions import SessionStore

__all__ = [
    "BasePrompt",
    "BaseTool",
    "ContentEnvelope",
    "Dispatcher",
    "ErrorResponse",
    "ErrorType",
    "PromptRegistry",
    "RawValue",
    "RequestEnvelope",
    "SessionStore",
    "SuccessResponse",
    "TextContent",
    "ToolExecutionError",
    "ToolRegistry",
    "ValidationResult",
]
