"""Errors raised by the Readwise client, each carrying structured details."""

from typing import Any, Dict, Optional


class ReadwiseError(Exception):
    """Base error for Readwise API failures."""

    type = "api"
    default_code = "api_error"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details: Dict[str, Any] = {"code": code or self.default_code, "message": message}


class AuthenticationError(ReadwiseError):
    """Missing or rejected API key."""

    type = "authentication"
    default_code = "authentication_failed"


class RateLimitError(ReadwiseError):
    """Still rate limited after the configured retries."""

    type = "rate_limit"
    default_code = "rate_limited"

    def __init__(self, message: str, *, retry_after: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NetworkError(ReadwiseError):
    """Connection failure or timeout talking to Readwise."""

    type = "network"
    default_code = "network_error"


class NotFoundError(ReadwiseError):
    default_code = "not_found"
