"""Shared Pydantic contracts for the request dispatch layer."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

UNKNOWN_REQUEST_ID = "unknown"


class RequestType(str, Enum):
    """Request taxonomy understood by the dispatcher."""

    TOOL_CALL = "tool_call"
    PROMPT_CALL = "prompt_call"


class ErrorType(str, Enum):
    """Error kinds carried by every error envelope."""

    TRANSPORT = "transport"
    VALIDATION = "validation"
    EXECUTION = "execution"


class TextContent(BaseModel):
    """Plain text content item."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Base64 encoded image content item."""

    type: Literal["image"] = "image"
    data: str = Field(..., description="Base64 encoded image bytes")
    mime_type: str = Field(..., description="Image MIME type, e.g. image/png")


ContentItem = Annotated[Union[TextContent, ImageContent], Field(discriminator="type")]


class RequestEnvelope(BaseModel):
    """Normalized request handed to the dispatcher by every adapter."""

    type: RequestType
    name: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    request_id: str = Field(..., min_length=1)


class ErrorDetails(BaseModel):
    """Machine readable error code plus message."""

    code: str
    message: str
    errors: Optional[List[str]] = Field(
        default=None, description="One 'field: message' entry per validation failure"
    )


class ErrorBody(BaseModel):
    type: ErrorType
    details: ErrorDetails


class ErrorResponse(BaseModel):
    """Error envelope returned for failed requests."""

    error: ErrorBody
    request_id: str = UNKNOWN_REQUEST_ID

    @classmethod
    def build(
        cls,
        error_type: ErrorType,
        code: str,
        message: str,
        request_id: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> "ErrorResponse":
        return cls(
            error=ErrorBody(
                type=error_type,
                details=ErrorDetails(code=code, message=message, errors=errors),
            ),
            request_id=request_id or UNKNOWN_REQUEST_ID,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class SuccessResponse(BaseModel):
    """Success envelope carrying the operation's content."""

    content: List[ContentItem]
    request_id: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


Response = Union[SuccessResponse, ErrorResponse]


class ContentEnvelope(BaseModel):
    """Operation result that is already content-shaped and passes through as is."""

    content: List[ContentItem]

    @classmethod
    def text(cls, text: str) -> "ContentEnvelope":
        return cls(content=[TextContent(text=text)])


class RawValue(BaseModel):
    """Operation result that the dispatcher serializes into a single text item."""

    value: Any = None


OperationResult = Union[RawValue, ContentEnvelope]


class ValidationIssue(BaseModel):
    """Field-level validation failure."""

    field: str
    message: str

    def format(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationResult(BaseModel):
    """Verdict of the validation layer."""

    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def failed(cls, errors: List[ValidationIssue]) -> "ValidationResult":
        return cls(valid=False, errors=errors)


class OperationSpec(BaseModel):
    """Public metadata describing a tool or prompt for discovery."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict, description="JSON schema for parameters")
    annotations: Dict[str, bool] = Field(default_factory=dict, description="Behaviour hints")
