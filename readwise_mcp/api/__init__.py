"""Readwise REST API client."""

from .client import ReadwiseClient
from .errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ReadwiseError,
)
from .readwise_api import ReadwiseAPI

__all__ = [
    "AuthenticationError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "ReadwiseAPI",
    "ReadwiseClient",
    "ReadwiseError",
]
