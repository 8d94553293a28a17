"""
Logging configuration for the Readwise MCP server.
"""

import logging
import re
import sys
from typing import Any, Dict, Optional, TextIO

import structlog

_SECRET_KEYS = {"api_key", "readwise_api_key", "token", "authorization", "server_auth_token"}
_SECRET_PATTERNS = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE),
    re.compile(r"(Token\s+)[A-Za-z0-9._\-]+", re.IGNORECASE),
    re.compile(r"([?&]token=)[^&\s]+", re.IGNORECASE),
]


def _mask(value: str) -> str:
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


def redact_secrets_processor(logger, method_name, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Structlog processor that keeps credentials out of the logs.

    Values under credential-like keys are replaced outright; other string
    values have bearer/token fragments masked.
    """
    for key, value in list(event_dict.items()):
        if key.lower() in _SECRET_KEYS and value:
            event_dict[key] = "***"
        elif isinstance(value, str):
            event_dict[key] = _mask(value)
    return event_dict


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Setup structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        stream: Output stream. Stdio mode must pass ``sys.stderr`` so that
            stdout only carries protocol lines.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        stream=stream or sys.stdout,
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_secrets_processor,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )