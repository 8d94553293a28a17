"""Shared base for tools backed by the Readwise API."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..api import ReadwiseAPI
from ..mcp.base import BaseTool, ToolExecutionError


class ReadwiseTool(BaseTool):
    """Tool holding a reference to the shared :class:`ReadwiseAPI`."""

    def __init__(self, api: ReadwiseAPI) -> None:
        self.api = api


def require_confirmation(provided: str, expected: str) -> None:
    """Reject a destructive call unless the caller typed the exact phrase."""
    if provided != expected:
        raise ToolExecutionError(
            f'Confirmation required: pass confirmation="{expected}" to proceed',
            code="confirmation_required",
        )


def compact(values: Dict[str, Any], *, exclude: Optional[set] = None) -> Dict[str, Any]:
    """Drop unset fields so partial updates only send what changed."""
    exclude = exclude or set()
    return {key: value for key, value in values.items() if value is not None and key not in exclude}
