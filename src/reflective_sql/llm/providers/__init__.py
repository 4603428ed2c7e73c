"""Completion provider implementations."""
from .mock import MockProvider
from .openai import OpenAIProvider
from .openrouter import OpenRouterProvider

__all__ = ["MockProvider", "OpenAIProvider", "OpenRouterProvider"]
