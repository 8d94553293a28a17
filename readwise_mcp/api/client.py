"""
HTTP client for the Readwise APIs.

Highlights live on the v2 API, Reader documents on v3. Both authenticate
with ``Authorization: Token <key>``.

Usage:
    client = ReadwiseClient(api_key="...")
    books = await client.request("GET", "/books/", params={"page_size": 10})
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Literal, Optional

import httpx
import structlog

from .errors import AuthenticationError, NetworkError, NotFoundError, RateLimitError, ReadwiseError

logger = structlog.get_logger(__name__)

ApiVersion = Literal["v2", "v3"]

DEFAULT_RETRY_AFTER = 1.0


class ReadwiseClient:
    """Async HTTP client with rate-limit backoff and typed errors."""

    def __init__(
        self,
        api_key: str = "",
        *,
        base_url: str = "https://readwise.io/api/v2",
        reader_base_url: str = "https://readwise.io/api/v3",
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_urls: Dict[str, str] = {
            "v2": base_url.rstrip("/"),
            "v3": reader_base_url.rstrip("/"),
        }
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        api: ApiVersion = "v2",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body (None for empty bodies)."""
        if not self.api_key:
            raise AuthenticationError(
                "Readwise API key is not configured. Set READWISE_API_KEY or pass --api-key.",
                code="missing_api_key",
            )

        client = await self._get_client()
        url = f"{self.base_urls[api]}/{path.lstrip('/')}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        headers = {"Authorization": f"Token {self.api_key}"}

        attempt = 0
        while True:
            try:
                response = await client.request(method, url, params=query, json=json, headers=headers)
            except httpx.TimeoutException as exc:
                logger.warning("Readwise request timed out", method=method, url=url)
                raise NetworkError(f"Request to Readwise timed out: {exc}", code="timeout") from exc
            except httpx.TransportError as exc:
                logger.warning("Readwise request failed", method=method, url=url, error=str(exc))
                raise NetworkError(f"Could not reach Readwise: {exc}") from exc

            if response.status_code != 429:
                return self._decode(response)

            retry_after = self._retry_after(response, attempt)
            if attempt >= self.max_retries:
                raise RateLimitError(
                    "Readwise rate limit exceeded",
                    retry_after=retry_after,
                    status_code=429,
                )
            attempt += 1
            logger.info("Rate limited by Readwise, backing off", url=url, retry_after=retry_after, attempt=attempt)
            await asyncio.sleep(retry_after)

    @staticmethod
    def _retry_after(response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        if header:
            try:
                return max(float(header), 0.0)
            except ValueError:
                pass
        return DEFAULT_RETRY_AFTER * (2 ** attempt)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                "Readwise rejected the API key" if status == 401 else "Access to this Readwise resource is forbidden",
                status_code=status,
            )
        if status == 404:
            raise NotFoundError(f"Resource not found: {response.request.url.path}", status_code=status)
        if status >= 400:
            raise ReadwiseError(
                f"Readwise API error {status}: {response.text[:200]}",
                status_code=status,
            )
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ReadwiseError("Readwise returned a non-JSON response", code="invalid_response", status_code=status) from exc
