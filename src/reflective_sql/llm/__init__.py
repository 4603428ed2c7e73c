"""Completion provider abstraction used for translation and explanations."""
from .base import (
    Completion,
    CompletionRequest,
    LLMError,
    LLMProvider,
    LLMTimeoutError,
    LLMUsage,
    ToolSpec,
    combine_usage,
)

__all__ = [
    "Completion",
    "CompletionRequest",
    "LLMError",
    "LLMProvider",
    "LLMTimeoutError",
    "LLMUsage",
    "ToolSpec",
    "combine_usage",
]
