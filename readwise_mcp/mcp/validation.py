"""Parameter validation against an operation's declared shape."""

from __future__ import annotations

from typing import Any, Dict

import structlog

from .base import BaseOperation
from .protocol import ValidationIssue, ValidationResult

logger = structlog.get_logger(__name__)


def validate(operation: BaseOperation, parameters: Dict[str, Any]) -> ValidationResult:
    """
    Check ``parameters`` for ``operation`` and always return a verdict.

    Operations that declare no validator accept everything. A validator that
    raises is reported as a failed verdict instead of propagating.
    """
    validator = getattr(operation, "validate", None)
    if validator is None:
        return ValidationResult.ok()
    try:
        result = validator(parameters)
    except Exception as exc:
        logger.warning(
            "Validator raised, treating parameters as invalid",
            operation=operation.name,
            error=str(exc),
        )
        return ValidationResult.failed([ValidationIssue(field="parameters", message=str(exc))])
    if result is None:
        return ValidationResult.ok()
    return result
