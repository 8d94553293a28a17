"""Operation registries keyed by unique name."""

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, Optional, TypeVar

import structlog

from .base import BaseOperation, BasePrompt, BaseTool
from .protocol import OperationSpec

logger = structlog.get_logger(__name__)

OperationT = TypeVar("OperationT", bound=BaseOperation)


class OperationRegistry(Generic[OperationT]):
    """
    In-memory, insertion-ordered registry of operations.

    Names are unique: a second registration under an existing name is
    rejected with ValueError and the first registration stays in place.
    """

    kind = "operation"

    def __init__(self) -> None:
        self._operations: Dict[str, OperationT] = {}

    def register(self, operation: OperationT) -> None:
        """Register an operation implementation."""
        if operation.name in self._operations:
            logger.error(f"Duplicate MCP {self.kind} registration", name=operation.name)
            raise ValueError(f"{self.kind.capitalize()} '{operation.name}' is already registered")
        self._operations[operation.name] = operation
        logger.debug(f"Registered MCP {self.kind}", name=operation.name)

    def get(self, name: str) -> Optional[OperationT]:
        return self._operations.get(name)

    def get_names(self) -> List[str]:
        return list(self._operations)

    def list_specs(self) -> List[OperationSpec]:
        """Return OperationSpec list for discovery, in registration order."""
        return [operation.spec() for operation in self._operations.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationT]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


class ToolRegistry(OperationRegistry[BaseTool]):
    kind = "tool"


class PromptRegistry(OperationRegistry[BasePrompt]):
    kind = "prompt"
