"""Built-in Readwise prompts."""

from typing import List

from ..api import ReadwiseAPI
from ..mcp.base import BasePrompt
from .highlight import ReadwiseHighlightPrompt
from .search import ReadwiseSearchPrompt

PROMPT_CLASSES = (ReadwiseHighlightPrompt, ReadwiseSearchPrompt)


def build_prompts(api: ReadwiseAPI) -> List[BasePrompt]:
    return [prompt_cls(api) for prompt_cls in PROMPT_CLASSES]


__all__ = ["PROMPT_CLASSES", "build_prompts"]
