"""Base abstractions for MCP tools and prompts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from .protocol import (
    OperationResult,
    OperationSpec,
    ValidationIssue,
    ValidationResult,
)


class ToolExecutionError(RuntimeError):
    """Raised when an operation fails to produce a result."""

    type = "execution"

    def __init__(
        self,
        message: str,
        *,
        code: str = "tool_error",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details: Dict[str, Any] = {"code": code, "message": message}


def issues_from_validation_error(exc: ValidationError) -> list[ValidationIssue]:
    """Flatten a pydantic ValidationError into field-level issues."""
    issues = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ()))
        issues.append(ValidationIssue(field=loc or "parameters", message=error.get("msg", "invalid")))
    return issues


class BaseOperation(ABC):
    """
    Abstract base class for invocable operations.

    ``input_model`` drives both the advertised parameter schema and the
    validator. Operations without an input model accept any parameters and
    surface malformed input as execution errors.
    """

    name: ClassVar[str]
    description: ClassVar[str] = ""
    input_model: ClassVar[Optional[Type[BaseModel]]] = None

    def parameters_schema(self) -> Dict[str, Any]:
        if self.input_model is None:
            return {"type": "object", "properties": {}}
        return self.input_model.model_json_schema()

    def annotations(self) -> Dict[str, bool]:
        return {}

    def spec(self) -> OperationSpec:
        """Return OperationSpec for discovery."""
        return OperationSpec(
            name=self.name,
            description=self.description,
            parameters=self.parameters_schema(),
            annotations=self.annotations(),
        )

    def validate(self, parameters: Dict[str, Any]) -> ValidationResult:
        if self.input_model is None:
            return ValidationResult.ok()
        try:
            self.input_model.model_validate(parameters)
        except ValidationError as exc:
            return ValidationResult.failed(issues_from_validation_error(exc))
        return ValidationResult.ok()

    async def execute(self, parameters: Dict[str, Any]) -> OperationResult:
        """Parse parameters and delegate to the concrete implementation."""
        if self.input_model is None:
            return await self._execute(parameters)
        try:
            parsed = self.input_model.model_validate(parameters)
        except ValidationError as exc:
            raise ToolExecutionError(
                f"Invalid parameters for {self.name}: {exc.error_count()} error(s)",
                code="invalid_parameters",
            ) from exc
        return await self._execute(parsed)

    @abstractmethod
    async def _execute(self, params: Any) -> OperationResult:
        """Run the operation and return a tagged result."""


class BaseTool(BaseOperation):
    """Tool: a read/write operation against the Readwise library."""

    read_only: ClassVar[bool] = True
    destructive: ClassVar[bool] = False
    idempotent: ClassVar[bool] = True

    def annotations(self) -> Dict[str, bool]:
        return {
            "readOnlyHint": self.read_only,
            "destructiveHint": self.destructive,
            "idempotentHint": self.idempotent,
        }


class BasePrompt(BaseOperation):
    """Prompt: a templated text generation operation."""
