"""Transport adapters translating wire formats to dispatcher envelopes."""

from .sse import SseAdapter, SseTransport
from .stdio import StdioAdapter
from .streamable_http import StreamableHttpAdapter, StreamableHttpTransport

__all__ = [
    "SseAdapter",
    "SseTransport",
    "StdioAdapter",
    "StreamableHttpAdapter",
    "StreamableHttpTransport",
]
